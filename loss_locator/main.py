"""
Main orchestration module for the Loss Locator routing service.
Wires the store, thresholds, admission engine and assignment workflow
together and provides the command-line entry point.
"""

import argparse
import logging
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from .admission import AdmissionSummary, LeadAdmissionEngine
from .auth import Operator, require_read_access, require_write_access
from .config import AppConfig, ThresholdConfig, load_config
from .errors import ValidationError
from .models import RoutingQueueEntry
from .queue_view import QueueFilter, QueueRow, dashboard_metrics, filter_rows
from .settings import SettingsService
from .supabase_client import SupabaseClient
from .workflow import AssignmentWorkflow

logger = logging.getLogger(__name__)


@dataclass
class ActivityRecord:
    """One routing action, kept for the dashboard activity feed."""
    timestamp: datetime
    action: str  # "admitted", "assigned", "status"
    entry_id: str
    loss_event_id: str
    status: str
    actor: str
    detail: str = ""


class ActivityHistory:
    """Thread-safe history of recent routing actions."""

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self._history: list[ActivityRecord] = []
        self._lock = threading.Lock()

    def add(self, record: ActivityRecord) -> None:
        with self._lock:
            self._history.insert(0, record)
            if len(self._history) > self.max_size:
                self._history = self._history[:self.max_size]

    def record(self, action: str, entry: RoutingQueueEntry, actor: str, detail: str = "") -> None:
        self.add(ActivityRecord(
            timestamp=datetime.now(timezone.utc),
            action=action,
            entry_id=entry.id,
            loss_event_id=entry.loss_event_id,
            status=entry.status.value,
            actor=actor,
            detail=detail,
        ))

    def get_recent(self, limit: int = 20) -> list[ActivityRecord]:
        with self._lock:
            return self._history[:limit].copy()

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "admitted": sum(1 for r in self._history if r.action == "admitted"),
                "assigned": sum(1 for r in self._history if r.action == "assigned"),
                "status_changes": sum(1 for r in self._history if r.action == "status"),
            }


class RoutingService:
    """Entry point for every routing operation the console exposes."""

    def __init__(self, config: AppConfig, client: Optional[SupabaseClient] = None):
        self.config = config
        self.client = client or SupabaseClient(config.supabase)
        self.settings = SettingsService(self.client, config.thresholds)
        self.admission = LeadAdmissionEngine(self.client)
        self.workflow = AssignmentWorkflow(self.client)
        self.history = ActivityHistory()

    def test_connections(self) -> dict[str, bool]:
        """Test the data store connection."""
        logger.info("Testing Supabase connection...")
        return {"supabase": self.client.test_connection()}

    def admit_recent_events(self) -> AdmissionSummary:
        """Run one automatic admission pass over recent loss events."""
        thresholds = self.settings.get_thresholds()
        since = datetime.now(timezone.utc) - timedelta(hours=self.config.admission_lookback_hours)
        events = self.client.get_loss_events_since(since)

        summary = self.admission.admit_all(events, thresholds)
        for entry in summary.created:
            self.history.record("admitted", entry, "auto", f"priority {entry.priority.value}")
        return summary

    def admit_event(self, event_id: str, operator: Optional[Operator], manual: bool = True) -> RoutingQueueEntry:
        """Admit one loss event on an operator's request."""
        operator = require_write_access(operator, "admit loss event")

        event = self.client.get_loss_event(event_id)
        if event is None:
            raise ValidationError(f"Loss event {event_id} not found", {"loss_event_id": event_id})

        entry = self.admission.admit(event, self.settings.get_thresholds(), manual=manual)
        if entry is None:
            raise ValidationError(
                f"Loss event {event_id} does not meet admission thresholds",
                {"loss_event_id": event_id},
            )

        self.history.record("admitted", entry, operator.email, "manual" if manual else "")
        return entry

    def assign(
        self,
        entry_id: str,
        operator: Optional[Operator],
        assigned_to: str,
        assignee_type: str,
        priority: str,
        notes: Optional[str] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> RoutingQueueEntry:
        operator = require_write_access(operator, "assign lead")
        entry = self.workflow.assign(entry_id, assigned_to, assignee_type, priority, notes, expected_updated_at)
        self.history.record("assigned", entry, operator.email, f"to {entry.assigned_to}")
        return entry

    def transition_status(
        self,
        entry_id: str,
        operator: Optional[Operator],
        new_status: str,
        expected_updated_at: Optional[datetime] = None,
    ) -> RoutingQueueEntry:
        operator = require_write_access(operator, "change lead status")
        entry = self.workflow.transition_status(entry_id, new_status, expected_updated_at)
        self.history.record("status", entry, operator.email)
        return entry

    def queue_rows(self, queue_filter: QueueFilter, operator: Optional[Operator]) -> list[QueueRow]:
        """Load the routing queue with enrichment and apply the operator's filters."""
        require_read_access(operator, "view routing queue")
        thresholds = self.settings.get_thresholds()
        entries = self.client.get_routing_queue()
        event_ids = sorted({e.loss_event_id for e in entries if e.loss_event_id})
        events = self.client.get_loss_events_by_ids(event_ids)
        properties = self.client.get_loss_properties_by_loss_ids([i for i in event_ids if i in events])

        demographics: dict[str, Any] = {}
        rows = []
        for entry in entries:
            event = events.get(entry.loss_event_id)
            loss_property = properties.get(entry.loss_event_id)

            demographic = None
            if event and event.zip:
                if event.zip not in demographics:
                    demographics[event.zip] = self.client.get_zip_demographic(event.zip)
                demographic = demographics[event.zip]

            rows.append(QueueRow(entry, event, loss_property, demographic))

        return filter_rows(rows, queue_filter, thresholds)

    def thresholds(self, operator: Optional[Operator]) -> ThresholdConfig:
        require_read_access(operator, "view thresholds")
        return self.settings.get_thresholds()

    def recent_activity(self, operator: Optional[Operator], limit: int = 20) -> list[ActivityRecord]:
        require_read_access(operator, "view activity")
        return self.history.get_recent(limit)

    def metrics(self, operator: Optional[Operator]) -> dict[str, Any]:
        """Dashboard metrics plus this process's activity counts."""
        require_read_access(operator, "view metrics")
        since = datetime.now(timezone.utc) - timedelta(hours=24)
        events = self.client.get_loss_events_since(since)
        entries = self.client.get_routing_queue()
        stats = dashboard_metrics(events, entries)
        stats["activity"] = self.history.get_stats()
        return stats


def setup_logging(log_dir: str, debug: bool = False) -> None:
    """Configure logging."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    log_level = logging.DEBUG if debug else logging.INFO

    # File handler
    file_handler = logging.FileHandler(
        log_path / "routing.log",
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    ))

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loss-locator",
        description="Loss Locator lead admission and routing service",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("admit", help="Run one admission pass over recent loss events")
    subparsers.add_parser("check", help="Validate configuration and test the data store connection")

    serve = subparsers.add_parser("serve", help="Serve the routing API")
    serve.add_argument("--host", default=None, help="Bind address (default: DASHBOARD_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: DASHBOARD_PORT)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Load configuration
    config = load_config()

    # Setup logging
    setup_logging(config.log_dir, config.debug_mode)

    # Validate configuration
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    service = RoutingService(config)

    if args.command == "check":
        results = service.test_connections()
        for name, success in results.items():
            logger.info(f"  {name}: {'OK' if success else 'FAILED'}")
        return 0 if all(results.values()) else 1

    if args.command == "admit":
        summary = service.admit_recent_events()
        logger.info(
            f"Admitted {summary.created_count} new leads "
            f"({summary.existing} already routed, {summary.skipped} below thresholds)"
        )
        return 0

    from .dashboard import run_dashboard
    run_dashboard(service, args.host or config.dashboard_host, args.port or config.dashboard_port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
