"""
Supabase REST (PostgREST) client for the Loss Locator routing service.
Reads loss events and enrichment, and reads/writes routing queue entries
and admin settings.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import SupabaseConfig
from .errors import ConcurrentModificationConflict, DependencyUnavailable, DuplicateAdmissionConflict
from .models import LossEvent, LossProperty, RoutingQueueEntry, ZipDemographic, as_utc

logger = logging.getLogger(__name__)


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat()


class SupabaseClient:
    """Client for the Supabase REST and Auth APIs."""

    def __init__(self, config: SupabaseConfig):
        self.config = config
        self.base_url = config.url.rstrip("/")
        self.rest_url = f"{self.base_url}/rest/v1"

        # Retry throttling and 5xx only; timeouts and refused connections surface at once
        self.session = requests.Session()
        retries = Retry(
            total=config.max_retries,
            connect=0,
            read=False,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
        )
        self.session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session.mount("http://", HTTPAdapter(max_retries=retries))

    def _headers(self, prefer: Optional[str] = None) -> dict:
        """Get request headers with authentication."""
        headers = {
            "apikey": self.config.service_key,
            "Authorization": f"Bearer {self.config.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict] = None,
        payload: Optional[dict] = None,
        prefer: Optional[str] = None,
        allow_conflict: bool = False,
    ) -> requests.Response:
        """Send a PostgREST request, converting transport failures to DependencyUnavailable."""
        try:
            response = self.session.request(
                method,
                f"{self.rest_url}/{table}",
                headers=self._headers(prefer),
                params=params,
                json=payload,
                timeout=self.config.timeout_seconds,
            )
        except requests.Timeout as e:
            logger.error(f"Supabase {method} {table} timed out: {e}")
            raise DependencyUnavailable(
                f"Data store timed out on {method} {table}", {"table": table}
            ) from e
        except requests.RequestException as e:
            logger.error(f"Supabase {method} {table} failed: {e}")
            raise DependencyUnavailable(
                f"Data store unavailable on {method} {table}", {"table": table}
            ) from e

        if allow_conflict and response.status_code == 409:
            return response

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"Supabase {method} {table} returned {response.status_code}: {response.text}")
            raise DependencyUnavailable(
                f"Data store error on {method} {table}",
                {"table": table, "status": response.status_code},
            ) from e

        return response

    def _select(self, table: str, params: dict) -> list[dict]:
        params = {"select": "*", **params}
        return self._request("GET", table, params=params).json() or []

    def _select_one(self, table: str, params: dict) -> Optional[dict]:
        rows = self._select(table, {**params, "limit": 1})
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Loss events and enrichment (read-only)
    # ------------------------------------------------------------------

    def get_loss_event(self, event_id: str) -> Optional[LossEvent]:
        """Fetch a loss event by ID."""
        if not event_id or not event_id.strip():
            logger.warning("get_loss_event called with empty ID")
            return None
        row = self._select_one("loss_events", {"id": f"eq.{event_id}"})
        return LossEvent.from_record(row) if row else None

    def get_loss_events_since(self, since: datetime) -> list[LossEvent]:
        """Fetch loss events newer than a timestamp, newest first."""
        rows = self._select("loss_events", {
            "event_timestamp": f"gte.{_iso(since)}",
            "order": "event_timestamp.desc",
        })
        events = []
        for row in rows:
            try:
                events.append(LossEvent.from_record(row))
            except (KeyError, ValueError) as e:
                logger.error(f"Error parsing loss event {row.get('id')}: {e}")
        logger.info(f"Retrieved {len(events)} loss events since {_iso(since)}")
        return events

    def get_loss_events_by_ids(self, event_ids: list[str]) -> dict[str, LossEvent]:
        if not event_ids:
            return {}
        rows = self._select("loss_events", {"id": f"in.({','.join(event_ids)})"})
        return {str(row["id"]): LossEvent.from_record(row) for row in rows}

    def get_loss_properties_by_loss_ids(self, loss_event_ids: list[str]) -> dict[str, LossProperty]:
        """Fetch enrichment for many loss events in one request, keyed by loss event ID."""
        if not loss_event_ids:
            return {}
        rows = self._select("loss_properties", {"loss_id": f"in.({','.join(loss_event_ids)})"})
        properties: dict[str, LossProperty] = {}
        for row in rows:
            loss_property = LossProperty.from_record(row)
            if loss_property.loss_id:
                properties.setdefault(loss_property.loss_id, loss_property)
        return properties

    def get_zip_demographic(self, zip_code: str) -> Optional[ZipDemographic]:
        if not zip_code:
            return None
        row = self._select_one("zip_demographics", {"zip": f"eq.{zip_code}"})
        return ZipDemographic.from_record(row) if row else None

    # ------------------------------------------------------------------
    # Routing queue
    # ------------------------------------------------------------------

    def get_routing_queue(self, status: Optional[str] = None) -> list[RoutingQueueEntry]:
        """Fetch routing queue entries, newest first."""
        params = {"order": "created_at.desc"}
        if status:
            params["status"] = f"eq.{status}"
        return [RoutingQueueEntry.from_record(row) for row in self._select("routing_queue", params)]

    def get_routing_entry(self, entry_id: str) -> Optional[RoutingQueueEntry]:
        row = self._select_one("routing_queue", {"id": f"eq.{entry_id}"})
        return RoutingQueueEntry.from_record(row) if row else None

    def get_routing_entry_for_event(self, loss_event_id: str) -> Optional[RoutingQueueEntry]:
        row = self._select_one("routing_queue", {"loss_event_id": f"eq.{loss_event_id}"})
        return RoutingQueueEntry.from_record(row) if row else None

    def insert_routing_entry(self, record: dict[str, Any]) -> RoutingQueueEntry:
        """Insert a queue entry.

        Raises DuplicateAdmissionConflict when the unique index on
        loss_event_id rejects the row.
        """
        response = self._request(
            "POST",
            "routing_queue",
            payload=record,
            prefer="return=representation",
            allow_conflict=True,
        )
        if response.status_code == 409:
            logger.info(f"Routing entry for loss event {record.get('loss_event_id')} already exists")
            raise DuplicateAdmissionConflict(
                "Loss event already has a routing queue entry",
                {"loss_event_id": record.get("loss_event_id")},
            )

        rows = response.json()
        entry = RoutingQueueEntry.from_record(rows[0])
        logger.info(f"Created routing entry {entry.id} for loss event {entry.loss_event_id}")
        return entry

    def update_routing_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_updated_at: Optional[datetime],
    ) -> RoutingQueueEntry:
        """Patch an entry only if its updated_at still matches what was read."""
        params = {"id": f"eq.{entry_id}"}
        if expected_updated_at is not None:
            params["updated_at"] = f"eq.{_iso(expected_updated_at)}"
        else:
            params["updated_at"] = "is.null"

        rows = self._request(
            "PATCH",
            "routing_queue",
            params=params,
            payload=fields,
            prefer="return=representation",
        ).json()

        if not rows:
            logger.warning(f"Routing entry {entry_id} changed since it was read")
            raise ConcurrentModificationConflict(
                "Routing entry was modified by another operator; reload and retry",
                {"entry_id": entry_id},
            )

        entry = RoutingQueueEntry.from_record(rows[0])
        logger.info(f"Updated routing entry {entry_id}: {', '.join(sorted(fields))}")
        return entry

    # ------------------------------------------------------------------
    # Admin settings
    # ------------------------------------------------------------------

    def get_admin_settings(self) -> Optional[dict[str, Any]]:
        """Fetch the most recently updated admin_settings row."""
        return self._select_one("admin_settings", {"order": "updated_at.desc"})

    def update_admin_settings(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Update the single admin_settings row, creating it if missing."""
        existing = self._select_one("admin_settings", {"select": "id"})

        if existing:
            rows = self._request(
                "PATCH",
                "admin_settings",
                params={"id": f"eq.{existing['id']}"},
                payload=fields,
                prefer="return=representation",
            ).json()
        else:
            rows = self._request(
                "POST",
                "admin_settings",
                payload=fields,
                prefer="return=representation",
            ).json()

        logger.info(f"Saved admin settings: {', '.join(sorted(fields))}")
        return rows[0] if rows else fields

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def get_auth_user(self, access_token: str) -> Optional[dict[str, Any]]:
        """Look up the Supabase Auth user behind an access token."""
        try:
            response = self.session.get(
                f"{self.base_url}/auth/v1/user",
                headers={
                    "apikey": self.config.service_key,
                    "Authorization": f"Bearer {access_token}",
                },
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"Supabase auth lookup failed: {e}")
            raise DependencyUnavailable("Auth service unavailable") from e

        if response.status_code in (401, 403):
            return None

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"Supabase auth lookup returned {response.status_code}")
            raise DependencyUnavailable("Auth service error", {"status": response.status_code}) from e

        return response.json()

    def get_user_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        """Fetch id, email and role from the users table."""
        return self._select_one("users", {"id": f"eq.{user_id}", "select": "id,email,role"})

    def test_connection(self) -> bool:
        """Test the Supabase connection."""
        try:
            self._request("GET", "admin_settings", params={"select": "id", "limit": 1})
            logger.info("Supabase connection test successful")
            return True
        except DependencyUnavailable as e:
            logger.error(f"Supabase connection test failed: {e}")
            return False
