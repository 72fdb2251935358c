"""
Flask API for the Loss Locator operator console.
Exposes the routing operations as JSON endpoints.
"""

import logging
from datetime import datetime
from typing import Optional

from flask import Flask, current_app, jsonify, request

from .auth import Operator, resolve_operator
from .errors import (
    ConcurrentModificationConflict,
    DependencyUnavailable,
    DuplicateAdmissionConflict,
    InvalidTransition,
    PermissionDenied,
    RoutingError,
    ValidationError,
)
from .models import parse_timestamp
from .queue_view import QueueFilter

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    ValidationError: 400,
    PermissionDenied: 403,
    InvalidTransition: 409,
    DuplicateAdmissionConflict: 409,
    ConcurrentModificationConflict: 409,
    DependencyUnavailable: 503,
}


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() in ("1", "true", "yes")


def _service():
    return current_app.config["ROUTING_SERVICE"]


def _current_operator() -> Optional[Operator]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return resolve_operator(_service().client, header[len("Bearer "):].strip())


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _expected_updated_at(body: dict) -> Optional[datetime]:
    value = body.get("expected_updated_at")
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationError("expected_updated_at must be an ISO-8601 timestamp")
    return parsed


def create_app(service) -> Flask:
    """Build the API around a RoutingService."""
    app = Flask(__name__)
    app.config["ROUTING_SERVICE"] = service

    @app.errorhandler(RoutingError)
    def handle_routing_error(error: RoutingError):
        status = _STATUS_CODES.get(type(error), 500)
        if status >= 500:
            logger.error(f"Request failed: {error.message}")
        return jsonify(error.to_dict()), status

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy", "timestamp": datetime.now().isoformat()})

    @app.route('/api/queue')
    def get_queue():
        """Routing queue with the operator's filters applied."""
        queue_filter = QueueFilter(
            status=request.args.get("status", "All"),
            commercial_only=_flag("commercial_only"),
            phone_required=_flag("phone_required"),
            apply_routing_rules=_flag("routing_rules"),
        )
        rows = _service().queue_rows(queue_filter, _current_operator())
        return jsonify({"count": len(rows), "leads": [row.to_dict() for row in rows]})

    @app.route('/api/events/<event_id>/admit', methods=['POST'])
    def admit_event(event_id: str):
        body = _json_body() if request.get_data() else {}
        manual = body.get("manual", True)
        if not isinstance(manual, bool):
            raise ValidationError("manual must be true or false", {"manual": manual})
        entry = _service().admit_event(event_id, _current_operator(), manual=manual)
        return jsonify(entry.to_record()), 201

    @app.route('/api/queue/<entry_id>/assign', methods=['POST'])
    def assign(entry_id: str):
        body = _json_body()
        entry = _service().assign(
            entry_id,
            _current_operator(),
            assigned_to=body.get("assigned_to", ""),
            assignee_type=body.get("assignee_type", ""),
            priority=body.get("priority", ""),
            notes=body.get("notes"),
            expected_updated_at=_expected_updated_at(body),
        )
        return jsonify(entry.to_record())

    @app.route('/api/queue/<entry_id>/status', methods=['POST'])
    def transition_status(entry_id: str):
        body = _json_body()
        entry = _service().transition_status(
            entry_id,
            _current_operator(),
            new_status=body.get("status", ""),
            expected_updated_at=_expected_updated_at(body),
        )
        return jsonify(entry.to_record())

    @app.route('/api/settings', methods=['GET'])
    def get_settings():
        return jsonify(_service().thresholds(_current_operator()).to_record())

    @app.route('/api/settings', methods=['PUT'])
    def update_settings():
        thresholds = _service().settings.update_thresholds(_json_body(), _current_operator())
        return jsonify(thresholds.to_record())

    @app.route('/api/stats')
    def get_stats():
        """Dashboard metrics plus this process's activity counts."""
        stats = _service().metrics(_current_operator())
        stats["last_updated"] = datetime.now().isoformat()
        return jsonify(stats)

    @app.route('/api/activity')
    def get_activity():
        """Recent routing actions handled by this process."""
        records = _service().recent_activity(_current_operator())
        return jsonify([
            {
                "timestamp": r.timestamp.isoformat(),
                "action": r.action,
                "entry_id": r.entry_id,
                "loss_event_id": r.loss_event_id,
                "status": r.status,
                "actor": r.actor,
                "detail": r.detail,
            }
            for r in records
        ])

    return app


def run_dashboard(service, host: str = "127.0.0.1", port: int = 8080):
    """Run the API server."""
    logger.info(f"Starting routing API on http://{host}:{port}")
    create_app(service).run(host=host, port=port, debug=False, threaded=True)
