"""
Data model for loss events, enrichment records, and routing queue entries.
Records are built from Supabase rows and written back as plain dicts.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by PostgREST."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        logger.warning(f"Could not parse timestamp: {value}")
        return None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


class EventType(Enum):
    """Loss event catalog."""
    HAIL = "Hail"
    WIND = "Wind"
    FIRE = "Fire"
    FREEZE = "Freeze"


class LeadStatus(Enum):
    """Routing queue status, ordered from new to converted."""
    UNASSIGNED = "Unassigned"
    ASSIGNED = "Assigned"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    CONVERTED = "Converted"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is LeadStatus.CONVERTED


_STATUS_ORDER = (
    LeadStatus.UNASSIGNED,
    LeadStatus.ASSIGNED,
    LeadStatus.CONTACTED,
    LeadStatus.QUALIFIED,
    LeadStatus.CONVERTED,
)


class AssigneeType(Enum):
    """Who a lead is routed to."""
    INTERNAL_OPS = "internal-ops"
    ADJUSTER_PARTNER = "adjuster-partner"
    CONTRACTOR_PARTNER = "contractor-partner"


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass
class LossEvent:
    """An observed hazard occurrence. Owned by ingestion; read-only here."""
    id: str
    event_type: Union[EventType, str]
    severity: Optional[float]  # Opaque per-type score, only compared to thresholds
    zip: str
    event_timestamp: Optional[datetime] = None
    claim_probability: Optional[float] = None
    property_type: Optional[str] = None  # "residential", "commercial" or unknown
    is_commercial: bool = False
    lat: Optional[float] = None
    lng: Optional[float] = None
    income_band: Optional[str] = None
    state_code: Optional[str] = None
    priority_score: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def event_type_name(self) -> str:
        if isinstance(self.event_type, EventType):
            return self.event_type.value
        return self.event_type or "Unknown"

    @property
    def is_residential(self) -> bool:
        return self.property_type == "residential"

    @classmethod
    def from_record(cls, record: dict) -> "LossEvent":
        """Create a LossEvent from a loss_events row."""
        raw_type = record.get("event_type") or "Unknown"
        try:
            event_type: Union[EventType, str] = EventType(raw_type)
        except ValueError:
            # Ingestion owns the catalog; keep types we don't know as text
            event_type = raw_type

        property_type = record.get("property_type")
        is_commercial = record.get("is_commercial")
        if is_commercial is None:
            is_commercial = property_type == "commercial"

        return cls(
            id=str(record["id"]),
            event_type=event_type,
            severity=_optional_float(record.get("severity")),
            zip=record.get("zip") or "",
            event_timestamp=parse_timestamp(record.get("event_timestamp")),
            claim_probability=_optional_float(record.get("claim_probability")),
            property_type=property_type,
            is_commercial=bool(is_commercial),
            lat=_optional_float(record.get("lat")),
            lng=_optional_float(record.get("lng")),
            income_band=record.get("income_band"),
            state_code=record.get("state_code"),
            priority_score=_optional_int(record.get("priority_score")),
            created_at=parse_timestamp(record.get("created_at")),
        )


@dataclass
class LossProperty:
    """Owner and phone enrichment for the property hit by a loss event."""
    id: str
    loss_id: Optional[str]
    address: str
    owner_name: Optional[str] = None
    owner_type: Optional[str] = None
    phone_primary: Optional[str] = None
    phone_secondary: Optional[str] = None
    phone_type: Optional[str] = None
    phone_confidence: Optional[int] = None  # 0-100
    city: Optional[str] = None
    state_code: Optional[str] = None
    zip: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict) -> "LossProperty":
        return cls(
            id=str(record["id"]),
            loss_id=record.get("loss_id"),
            address=record.get("address") or "",
            owner_name=record.get("owner_name"),
            owner_type=record.get("owner_type"),
            phone_primary=record.get("phone_primary") or None,
            phone_secondary=record.get("phone_secondary") or None,
            phone_type=record.get("phone_type"),
            phone_confidence=_optional_int(record.get("phone_confidence")),
            city=record.get("city"),
            state_code=record.get("state_code"),
            zip=record.get("zip"),
        )


@dataclass
class ZipDemographic:
    """Income data keyed by zip code."""
    zip: str
    state_code: Optional[str] = None
    income_percentile: Optional[int] = None  # 0-100
    median_household_income: Optional[int] = None
    population: Optional[int] = None

    @classmethod
    def from_record(cls, record: dict) -> "ZipDemographic":
        return cls(
            zip=record["zip"],
            state_code=record.get("state_code"),
            income_percentile=_optional_int(record.get("income_percentile")),
            median_household_income=_optional_int(record.get("median_household_income")),
            population=_optional_int(record.get("population")),
        )


@dataclass
class RoutingQueueEntry:
    """A lead: the mutable queue record for one loss event."""
    id: str
    loss_event_id: str
    status: LeadStatus = LeadStatus.UNASSIGNED
    property_id: Optional[str] = None
    assigned_to: Optional[str] = None
    assignee_type: Optional[AssigneeType] = None
    priority: Optional[Priority] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: dict) -> "RoutingQueueEntry":
        """Create an entry from a routing_queue row."""
        assignee_type = record.get("assignee_type")
        priority = record.get("priority")

        return cls(
            id=str(record["id"]),
            loss_event_id=str(record.get("loss_event_id") or ""),
            status=LeadStatus(record.get("status") or LeadStatus.UNASSIGNED.value),
            property_id=record.get("property_id"),
            assigned_to=record.get("assigned_to"),
            assignee_type=AssigneeType(assignee_type) if assignee_type else None,
            priority=Priority(priority) if priority else None,
            notes=record.get("notes"),
            created_at=parse_timestamp(record.get("created_at")),
            updated_at=parse_timestamp(record.get("updated_at")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "loss_event_id": self.loss_event_id,
            "property_id": self.property_id,
            "status": self.status.value,
            "assigned_to": self.assigned_to,
            "assignee_type": self.assignee_type.value if self.assignee_type else None,
            "priority": self.priority.value if self.priority else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
