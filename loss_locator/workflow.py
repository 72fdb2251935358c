"""
Assignment workflow for routing queue entries.

Status only moves forward: Unassigned < Assigned < Contacted < Qualified <
Converted. Forward jumps are allowed (catching up on leads that were
already worked elsewhere); backward moves are rejected.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from .errors import ConcurrentModificationConflict, InvalidTransition, ValidationError
from .models import AssigneeType, LeadStatus, Priority, RoutingQueueEntry, as_utc

logger = logging.getLogger(__name__)


def _parse_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Unknown {label} '{value}'. Expected one of: {allowed}",
            {label: value},
        ) from None


class AssignmentWorkflow:
    """Applies operator actions to routing queue entries.

    `store` is any object with get_routing_entry() and
    update_routing_entry(); in production that is SupabaseClient.
    """

    def __init__(self, store):
        self.store = store

    def _load(self, entry_id: str, expected_updated_at: Optional[datetime]) -> RoutingQueueEntry:
        if not entry_id or not str(entry_id).strip():
            raise ValidationError("Invalid routing queue ID")

        entry = self.store.get_routing_entry(entry_id)
        if entry is None:
            raise ValidationError(f"Routing queue entry {entry_id} not found", {"entry_id": entry_id})

        if expected_updated_at is not None and (
            entry.updated_at is None or as_utc(entry.updated_at) != as_utc(expected_updated_at)
        ):
            logger.warning(f"Stale edit rejected for routing entry {entry_id}")
            raise ConcurrentModificationConflict(
                "Routing entry was modified by another operator; reload and retry",
                {"entry_id": entry_id},
            )
        return entry

    def assign(
        self,
        entry_id: str,
        assigned_to: str,
        assignee_type: Union[AssigneeType, str],
        priority: Union[Priority, str],
        notes: Optional[str] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> RoutingQueueEntry:
        """Assign a lead to a handler.

        Moves Unassigned entries to Assigned; entries further along keep
        their status. Notes replace whatever was there before.
        """
        assignee = (assigned_to or "").strip()
        if not assignee:
            raise ValidationError("Assignee name is required")
        assignee_type = _parse_enum(AssigneeType, assignee_type, "assignee_type")
        priority = _parse_enum(Priority, priority, "priority")

        entry = self._load(entry_id, expected_updated_at)

        fields = {
            "assigned_to": assignee,
            "assignee_type": assignee_type.value,
            "priority": priority.value,
            "notes": notes,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if entry.status == LeadStatus.UNASSIGNED:
            fields["status"] = LeadStatus.ASSIGNED.value

        updated = self.store.update_routing_entry(entry.id, fields, entry.updated_at)
        logger.info(
            f"Assigned routing entry {entry.id} to {assignee} "
            f"({assignee_type.value}, {priority.value}); status {updated.status.value}"
        )
        return updated

    def transition_status(
        self,
        entry_id: str,
        new_status: Union[LeadStatus, str],
        expected_updated_at: Optional[datetime] = None,
    ) -> RoutingQueueEntry:
        """Move a lead forward. Same status is a no-op; backwards raises InvalidTransition."""
        new_status = _parse_enum(LeadStatus, new_status, "status")
        entry = self._load(entry_id, expected_updated_at)

        if new_status == entry.status:
            return entry

        if new_status.rank < entry.status.rank:
            logger.warning(
                f"Rejected backward transition for routing entry {entry.id}: "
                f"{entry.status.value} -> {new_status.value}"
            )
            raise InvalidTransition(
                f"Cannot move lead from {entry.status.value} back to {new_status.value}",
                {"entry_id": entry.id, "from": entry.status.value, "to": new_status.value},
            )

        fields = {
            "status": new_status.value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        updated = self.store.update_routing_entry(entry.id, fields, entry.updated_at)
        logger.info(f"Routing entry {entry.id}: {entry.status.value} -> {new_status.value}")
        return updated
