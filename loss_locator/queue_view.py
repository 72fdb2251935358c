"""
Read-only queue views and dashboard metrics for the operator console.
Nothing here writes to the store.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from .classifier import calculate_priority_score, classify_for_routing
from .config import ThresholdConfig
from .errors import ValidationError
from .models import LeadStatus, LossEvent, LossProperty, RoutingQueueEntry, ZipDemographic

PHONE_DISPLAY_MIN_CONFIDENCE = 60
MASKED_PHONE = "***-***-****"


@dataclass
class QueueRow:
    """A routing entry joined with its event and enrichment."""
    entry: RoutingQueueEntry
    event: Optional[LossEvent] = None
    loss_property: Optional[LossProperty] = None
    demographic: Optional[ZipDemographic] = None

    @property
    def address(self) -> str:
        if self.loss_property and self.loss_property.address:
            return self.loss_property.address
        return "Unknown address"

    @property
    def owner_name(self) -> Optional[str]:
        return self.loss_property.owner_name if self.loss_property else None

    @property
    def phone_display(self) -> Optional[str]:
        """Phone shown only when the enrichment is confident enough."""
        if not self.loss_property or not self.loss_property.phone_primary:
            return None
        if (self.loss_property.phone_confidence or 0) >= PHONE_DISPLAY_MIN_CONFIDENCE:
            return self.loss_property.phone_primary
        return MASKED_PHONE

    @property
    def priority_score(self) -> int:
        if self.event is None:
            return 0
        return calculate_priority_score(
            self.event.severity, self.event.claim_probability, self.event.income_band
        )

    def to_dict(self) -> dict[str, Any]:
        event = self.event
        return {
            **self.entry.to_record(),
            "address": self.address,
            "owner_name": self.owner_name,
            "event_type": event.event_type_name if event else "Unknown",
            "severity": event.severity if event else None,
            "claim_probability": event.claim_probability if event else None,
            "is_commercial": event.is_commercial if event else False,
            "property_type": event.property_type if event else None,
            "zip": event.zip if event else None,
            "income_percentile": self.demographic.income_percentile if self.demographic else None,
            "phone": self.phone_display,
            "phone_confidence": self.loss_property.phone_confidence if self.loss_property else None,
            "priority_score": self.priority_score,
        }


@dataclass
class QueueFilter:
    """Operator's current view of the queue."""
    status: str = "All"
    commercial_only: bool = False
    phone_required: bool = False
    apply_routing_rules: bool = False

    def __post_init__(self):
        if self.status != "All":
            try:
                LeadStatus(self.status)
            except ValueError:
                raise ValidationError(f"Unknown status filter '{self.status}'") from None

    def matches(self, row: QueueRow, config: ThresholdConfig) -> bool:
        if self.status != "All" and row.entry.status.value != self.status:
            return False
        if self.commercial_only and not (row.event and row.event.is_commercial):
            return False
        if self.phone_required and not (row.loss_property and row.loss_property.phone_primary):
            return False
        if self.apply_routing_rules:
            return classify_for_routing(row.entry, row.event, row.loss_property, row.demographic, config)
        return True


def filter_rows(rows: Iterable[QueueRow], queue_filter: QueueFilter, config: ThresholdConfig) -> list[QueueRow]:
    return [row for row in rows if queue_filter.matches(row, config)]


def dashboard_metrics(
    events: list[LossEvent],
    entries: list[RoutingQueueEntry],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Headline numbers for the last 24 hours of loss events and the whole queue."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=24)

    recent = [e for e in events if e.event_timestamp and e.event_timestamp >= cutoff]

    by_category: dict[str, int] = {}
    for event in recent:
        by_category[event.event_type_name] = by_category.get(event.event_type_name, 0) + 1

    # Zips of recent events in the top income deciles, first six in event order
    high_value_zips: list[str] = []
    for event in recent:
        band = event.income_band or ""
        if any(decile in band for decile in ("7", "8", "9")) and event.zip not in high_value_zips:
            high_value_zips.append(event.zip)
    high_value_zips = high_value_zips[:6]

    total = len(entries)
    converted = sum(1 for e in entries if e.status == LeadStatus.CONVERTED)
    qualified = sum(1 for e in entries if e.status in (LeadStatus.QUALIFIED, LeadStatus.CONVERTED))

    top = sorted(recent, key=lambda e: e.severity or 0, reverse=True)[:10]

    return {
        "daily_loss_count": len(recent),
        "events_by_category": by_category,
        "high_value_zips": high_value_zips,
        "qualified_pct": round(qualified / total * 100) if total else 0,
        "converted_pct": round(converted / total * 100) if total else 0,
        "top_by_severity": [
            {"id": e.id, "event_type": e.event_type_name, "severity": e.severity, "zip": e.zip}
            for e in top
        ],
        "queue_size": total,
    }
