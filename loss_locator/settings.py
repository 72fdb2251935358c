"""
Admin-editable thresholds, read fresh from the admin_settings row.
"""

import logging
from typing import Any, Optional

from .auth import Operator, require_admin_access
from .config import ThresholdConfig
from .errors import ValidationError

logger = logging.getLogger(__name__)

_BOOL_FIELDS = {
    "auto_create_lead",
    "enable_residential_leads",
    "commercial_only_routing",
    "phone_required_routing",
    "nightly_export",
}

_RANGES = {
    "min_severity": (0, None),
    "min_claim_probability": (0, 1),
    "min_income_percentile": (0, 100),
    "min_phone_confidence": (0, 100),
}


def validate_threshold_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Check names, types and ranges of a partial threshold update."""
    editable = set(ThresholdConfig().to_record())
    cleaned = {}

    for name, value in changes.items():
        if name not in editable:
            raise ValidationError(f"Unknown setting '{name}'", {"setting": name})

        if name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{name} must be true or false", {"setting": name})
            cleaned[name] = value
            continue

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{name} must be a number", {"setting": name})

        low, high = _RANGES[name]
        if value < low or (high is not None and value > high):
            bounds = f">= {low}" if high is None else f"between {low} and {high}"
            raise ValidationError(f"{name} must be {bounds}", {"setting": name, "value": value})

        cleaned[name] = value

    return cleaned


class SettingsService:
    """Loads and saves ThresholdConfig through the data store."""

    def __init__(self, store, defaults: Optional[ThresholdConfig] = None):
        self.store = store
        self.defaults = defaults or ThresholdConfig()

    def get_thresholds(self) -> ThresholdConfig:
        """Read the current thresholds. Called per request so admin edits apply immediately."""
        record = self.store.get_admin_settings()
        if record is None:
            logger.warning("No admin_settings row found; using configured defaults")
            return self.defaults
        return ThresholdConfig.from_record(record, self.defaults)

    def update_thresholds(self, changes: dict[str, Any], operator: Optional[Operator]) -> ThresholdConfig:
        """Apply a partial update. Admin only."""
        operator = require_admin_access(operator, "update thresholds")
        cleaned = validate_threshold_changes(changes)
        if not cleaned:
            return self.get_thresholds()

        record = self.store.update_admin_settings({**cleaned, "updated_by": operator.id})
        logger.info(f"[AUDIT] Thresholds updated by {operator.email}: {sorted(cleaned)}")
        return ThresholdConfig.from_record(record, self.defaults)

