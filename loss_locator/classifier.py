"""
Event classification for lead admission and routing.

Admission decides whether a loss event becomes a lead candidate. Routing
decides whether an existing lead is shown to operators under the current
admin toggles. Both are pure functions of their inputs: no clock, no store.

Missing enrichment is "unknown", never an error:
- No LossProperty: fails phone-required routing (a phone is required).
- No ZipDemographic or no percentile: passes the income floor.
- No property_type on the event: passes the residential exclusion.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import ThresholdConfig
from .models import LossEvent, LossProperty, Priority, RoutingQueueEntry, ZipDemographic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of an admission check."""
    qualifies: bool
    reason: str


def classify_for_admission(event: LossEvent, config: ThresholdConfig) -> AdmissionDecision:
    """Decide whether an event meets the severity and claim-probability floors."""
    if event.severity is None:
        return AdmissionDecision(False, "severity unknown")
    if event.claim_probability is None:
        return AdmissionDecision(False, "claim probability unknown")

    if event.severity < config.min_severity:
        return AdmissionDecision(
            False,
            f"severity {event.severity:g} below minimum {config.min_severity:g}",
        )
    if event.claim_probability < config.min_claim_probability:
        return AdmissionDecision(
            False,
            f"claim probability {event.claim_probability:.2f} below minimum "
            f"{config.min_claim_probability:.2f}",
        )

    return AdmissionDecision(
        True,
        f"severity {event.severity:g} >= {config.min_severity:g} and claim probability "
        f"{event.claim_probability:.2f} >= {config.min_claim_probability:.2f}",
    )


def classify_for_routing(
    entry: Optional[RoutingQueueEntry],
    event: Optional[LossEvent],
    loss_property: Optional[LossProperty],
    demographic: Optional[ZipDemographic],
    config: ThresholdConfig,
) -> bool:
    """Decide whether a queue entry is routable under the admin routing toggles."""
    entry_id = entry.id if entry else None

    # Property type
    if config.commercial_only_routing:
        if event is None or not event.is_commercial:
            logger.debug(f"Entry {entry_id} hidden: commercial-only routing")
            return False
    elif not config.enable_residential_leads:
        if event is not None and event.is_residential:
            logger.debug(f"Entry {entry_id} hidden: residential leads disabled")
            return False

    # Phone
    if config.phone_required_routing:
        if loss_property is None or not loss_property.phone_primary:
            logger.debug(f"Entry {entry_id} hidden: no phone on file")
            return False
        if loss_property.phone_confidence is None or loss_property.phone_confidence < config.min_phone_confidence:
            logger.debug(f"Entry {entry_id} hidden: phone confidence below {config.min_phone_confidence}")
            return False

    # Income
    if config.min_income_percentile > 0:
        if demographic is not None and demographic.income_percentile is not None:
            if demographic.income_percentile < config.min_income_percentile:
                logger.debug(f"Entry {entry_id} hidden: income percentile below {config.min_income_percentile}")
                return False

    return True


def default_priority(event: LossEvent, config: ThresholdConfig) -> Priority:
    """Priority for a newly admitted lead.

    High when both severity and claim probability clear their admission
    floors by the configured margins, otherwise Medium.
    """
    if event.severity is None or event.claim_probability is None:
        return Priority.MEDIUM

    severity_clear = event.severity >= config.min_severity + config.high_priority_severity_margin
    # Round to avoid float drift on sums like 0.70 + 0.10
    probability_floor = round(config.min_claim_probability + config.high_priority_probability_margin, 6)
    probability_clear = event.claim_probability >= probability_floor

    return Priority.HIGH if severity_clear and probability_clear else Priority.MEDIUM


def calculate_priority_score(
    severity: Optional[float],
    claim_probability: Optional[float],
    income_band: Optional[str] = None,
) -> int:
    """Display ordering score in [0, 100]."""
    # Base score from severity (0-100)
    score = min(100.0, max(0.0, severity or 0.0))

    # Boost for high claim probability
    probability = claim_probability or 0.0
    if probability >= 0.8:
        score += 10
    elif probability >= 0.7:
        score += 5

    # Boost for high-income areas
    if income_band:
        band = income_band.lower()
        if "top 10" in band or "9" in band or "8" in band:
            score += 10
        elif "top 25" in band or "7" in band:
            score += 5

    return int(min(100, round(score)))
