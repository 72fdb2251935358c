"""
Shared fixtures for the routing tests.
FakeStore stands in for SupabaseClient with the same method names.
"""

import itertools
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from loss_locator.config import AppConfig, SupabaseConfig, ThresholdConfig
from loss_locator.errors import ConcurrentModificationConflict, DuplicateAdmissionConflict
from loss_locator.models import (
    LeadStatus,
    LossEvent,
    LossProperty,
    RoutingQueueEntry,
    ZipDemographic,
    parse_timestamp,
)

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class FakeStore:
    """In-memory routing store with the unique-event and compare-and-swap rules of the real table."""

    def __init__(self):
        self.entries: dict[str, RoutingQueueEntry] = {}
        self.events: dict[str, LossEvent] = {}
        self.properties: dict[str, LossProperty] = {}
        self.demographics: dict[str, ZipDemographic] = {}
        self.admin_settings: Optional[dict] = None
        self.tokens: dict[str, dict] = {}
        self.insert_calls = 0
        self.update_calls = 0
        self.property_batch_calls = 0
        self._ids = itertools.count(1)

    # Seeding helpers
    def add_event(self, event: LossEvent) -> LossEvent:
        self.events[event.id] = event
        return event

    def add_entry(self, loss_event_id: str, status: LeadStatus = LeadStatus.UNASSIGNED, **kwargs) -> RoutingQueueEntry:
        entry = RoutingQueueEntry(
            id=f"rq-{next(self._ids)}",
            loss_event_id=loss_event_id,
            status=status,
            created_at=BASE_TIME,
            updated_at=BASE_TIME,
            **kwargs,
        )
        self.entries[entry.id] = entry
        return replace(entry)

    def add_user(self, token: str, user_id: str, email: str, role: str) -> None:
        self.tokens[token] = {"id": user_id, "email": email, "role": role}

    # Loss events and enrichment
    def get_loss_event(self, event_id):
        return self.events.get(event_id)

    def get_loss_events_since(self, since):
        return sorted(
            (e for e in self.events.values() if e.event_timestamp and e.event_timestamp >= since),
            key=lambda e: e.event_timestamp,
            reverse=True,
        )

    def get_loss_events_by_ids(self, event_ids):
        return {i: self.events[i] for i in event_ids if i in self.events}

    def get_loss_properties_by_loss_ids(self, loss_event_ids):
        self.property_batch_calls += 1
        return {i: self.properties[i] for i in loss_event_ids if i in self.properties}

    def get_zip_demographic(self, zip_code):
        return self.demographics.get(zip_code)

    # Routing queue
    def get_routing_queue(self, status=None):
        entries = [replace(e) for e in self.entries.values()]
        if status:
            entries = [e for e in entries if e.status.value == status]
        return entries

    def get_routing_entry(self, entry_id):
        entry = self.entries.get(entry_id)
        return replace(entry) if entry else None

    def get_routing_entry_for_event(self, loss_event_id):
        for entry in self.entries.values():
            if entry.loss_event_id == loss_event_id:
                return replace(entry)
        return None

    def insert_routing_entry(self, record):
        self.insert_calls += 1
        if any(e.loss_event_id == record["loss_event_id"] for e in self.entries.values()):
            raise DuplicateAdmissionConflict("duplicate", {"loss_event_id": record["loss_event_id"]})
        entry = RoutingQueueEntry.from_record({**record, "id": f"rq-{next(self._ids)}"})
        self.entries[entry.id] = entry
        return replace(entry)

    def update_routing_entry(self, entry_id, fields, expected_updated_at):
        self.update_calls += 1
        current = self.entries[entry_id]
        if current.updated_at != expected_updated_at:
            raise ConcurrentModificationConflict("stale", {"entry_id": entry_id})

        merged = {**current.to_record(), **fields}
        updated = RoutingQueueEntry.from_record(merged)
        # Mimic the updated_at trigger: always strictly later than before
        stamp = parse_timestamp(fields.get("updated_at")) or current.updated_at
        if current.updated_at and stamp <= current.updated_at:
            stamp = current.updated_at + timedelta(microseconds=1)
        updated.updated_at = stamp
        self.entries[entry_id] = updated
        return replace(updated)

    # Admin settings
    def get_admin_settings(self):
        return dict(self.admin_settings) if self.admin_settings is not None else None

    def update_admin_settings(self, fields):
        self.admin_settings = {**(self.admin_settings or {}), **fields}
        return dict(self.admin_settings)

    # Auth
    def get_auth_user(self, access_token):
        profile = self.tokens.get(access_token)
        return {"id": profile["id"], "email": profile["email"]} if profile else None

    def get_user_profile(self, user_id):
        for profile in self.tokens.values():
            if profile["id"] == user_id:
                return dict(profile)
        return None

    def test_connection(self):
        return True


def make_event(
    event_id: str = "evt-1",
    severity: Optional[float] = 92,
    claim_probability: Optional[float] = 0.83,
    event_type: str = "Hail",
    zip_code: str = "75201",
    property_type: Optional[str] = "residential",
    event_timestamp: Optional[datetime] = None,
    income_band: Optional[str] = None,
) -> LossEvent:
    """Helper to create test loss events."""
    return LossEvent.from_record({
        "id": event_id,
        "event_type": event_type,
        "severity": severity,
        "claim_probability": claim_probability,
        "zip": zip_code,
        "property_type": property_type,
        "event_timestamp": (event_timestamp or BASE_TIME).isoformat(),
        "income_band": income_band,
    })


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def thresholds():
    """Stock thresholds: severity >= 75, claim probability >= 0.70, auto-create on."""
    return ThresholdConfig(min_severity=75, min_claim_probability=0.70, auto_create_lead=True)


@pytest.fixture
def app_config():
    return AppConfig(supabase=SupabaseConfig(), thresholds=ThresholdConfig())
