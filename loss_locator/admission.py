"""
Lead admission engine.
Turns qualifying loss events into routing queue entries, at most one per event.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from .classifier import classify_for_admission, default_priority
from .config import ThresholdConfig
from .errors import DuplicateAdmissionConflict
from .models import LeadStatus, LossEvent, RoutingQueueEntry

logger = logging.getLogger(__name__)


@dataclass
class AdmissionSummary:
    """Counts from one admission pass."""
    created: list[RoutingQueueEntry] = field(default_factory=list)
    existing: int = 0
    skipped: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)


class LeadAdmissionEngine:
    """Creates routing queue entries for loss events.

    `store` is any object with get_routing_entry_for_event() and
    insert_routing_entry(); in production that is SupabaseClient.
    """

    def __init__(self, store):
        self.store = store

    def admit(
        self,
        event: LossEvent,
        config: ThresholdConfig,
        manual: bool = False,
        property_id: Optional[str] = None,
    ) -> Optional[RoutingQueueEntry]:
        """Ensure a queue entry exists for a qualifying (or manually admitted) event.

        Returns the existing entry untouched if there is one, the new entry
        if one was created, or None if the event was not admitted.
        """
        entry, _ = self._admit(event, config, manual, property_id)
        return entry

    def _admit(
        self,
        event: LossEvent,
        config: ThresholdConfig,
        manual: bool,
        property_id: Optional[str],
    ) -> tuple[Optional[RoutingQueueEntry], bool]:
        """Admit an event; the flag is True only when this call created the entry."""
        existing = self.store.get_routing_entry_for_event(event.id)
        if existing is not None:
            logger.debug(f"Loss event {event.id} already routed as {existing.id} ({existing.status.value})")
            return existing, False

        decision = classify_for_admission(event, config)

        if decision.qualifies and config.auto_create_lead:
            logger.info(f"Auto-admitting loss event {event.id}: {decision.reason}")
        elif manual:
            logger.info(f"Manually admitting loss event {event.id} ({decision.reason})")
        elif not decision.qualifies:
            logger.debug(f"Not admitting loss event {event.id}: {decision.reason}")
            return None, False
        else:
            logger.debug(f"Not admitting loss event {event.id}: auto-create disabled")
            return None, False

        now = datetime.now(timezone.utc).isoformat()
        record = {
            "loss_event_id": event.id,
            "property_id": property_id,
            "status": LeadStatus.UNASSIGNED.value,
            "assigned_to": None,
            "assignee_type": None,
            "priority": default_priority(event, config).value,
            "notes": None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            return self.store.insert_routing_entry(record), True
        except DuplicateAdmissionConflict:
            # A concurrent caller won the insert; theirs is the entry
            winner = self.store.get_routing_entry_for_event(event.id)
            if winner is None:
                raise
            logger.info(f"Loss event {event.id} admitted concurrently as {winner.id}")
            return winner, False

    def admit_all(self, events: Iterable[LossEvent], config: ThresholdConfig) -> AdmissionSummary:
        """Run one automatic admission pass over a batch of events."""
        summary = AdmissionSummary()

        for event in events:
            entry, created = self._admit(event, config, manual=False, property_id=None)
            if created:
                summary.created.append(entry)
            elif entry is None:
                summary.skipped += 1
            else:
                summary.existing += 1

        logger.info(
            f"Admission pass: {summary.created_count} created, "
            f"{summary.existing} already routed, {summary.skipped} skipped"
        )
        return summary
