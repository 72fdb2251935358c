"""
Configuration management for the Loss Locator routing service.
Loads settings from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .validators import validate_supabase_key, validate_supabase_url


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SupabaseConfig:
    """Supabase REST API configuration."""
    url: str = ""
    service_key: str = ""
    timeout_seconds: float = 10.0
    max_retries: int = 3

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        return cls(
            url=os.getenv("SUPABASE_URL", ""),
            service_key=os.getenv("SUPABASE_SERVICE_KEY", os.getenv("SUPABASE_ANON_KEY", "")),
            timeout_seconds=float(os.getenv("SUPABASE_TIMEOUT_SECONDS", "10")),
            max_retries=int(os.getenv("SUPABASE_MAX_RETRIES", "3")),
        )


@dataclass
class ThresholdConfig:
    """Admission and routing thresholds (the admin_settings row)."""
    min_severity: float = 75
    min_claim_probability: float = 0.70  # Fraction, not percent
    min_income_percentile: int = 0       # 0 disables the income floor
    min_phone_confidence: int = 0
    auto_create_lead: bool = True
    enable_residential_leads: bool = True
    commercial_only_routing: bool = False
    phone_required_routing: bool = False
    nightly_export: bool = False

    # Margins over the admission floors that earn High priority
    high_priority_severity_margin: float = 15
    high_priority_probability_margin: float = 0.10

    @classmethod
    def from_env(cls) -> "ThresholdConfig":
        return cls(
            min_severity=float(os.getenv("MIN_SEVERITY", "75")),
            min_claim_probability=float(os.getenv("MIN_CLAIM_PROBABILITY", "0.70")),
            min_income_percentile=int(os.getenv("MIN_INCOME_PERCENTILE", "0")),
            min_phone_confidence=int(os.getenv("MIN_PHONE_CONFIDENCE", "0")),
            auto_create_lead=_env_bool("AUTO_CREATE_LEAD", True),
            enable_residential_leads=_env_bool("ENABLE_RESIDENTIAL_LEADS", True),
            commercial_only_routing=_env_bool("COMMERCIAL_ONLY_ROUTING", False),
            phone_required_routing=_env_bool("PHONE_REQUIRED_ROUTING", False),
            nightly_export=_env_bool("NIGHTLY_EXPORT", False),
            high_priority_severity_margin=float(os.getenv("HIGH_PRIORITY_SEVERITY_MARGIN", "15")),
            high_priority_probability_margin=float(os.getenv("HIGH_PRIORITY_PROBABILITY_MARGIN", "0.10")),
        )

    @classmethod
    def from_record(cls, record: dict[str, Any], defaults: Optional["ThresholdConfig"] = None) -> "ThresholdConfig":
        """Build from an admin_settings row, filling nulls from defaults."""
        base = defaults or cls()

        def pick(column: str, fallback):
            value = record.get(column)
            return fallback if value is None else value

        return cls(
            min_severity=float(pick("min_severity", base.min_severity)),
            min_claim_probability=float(pick("min_claim_probability", base.min_claim_probability)),
            min_income_percentile=int(pick("min_income_percentile", base.min_income_percentile)),
            min_phone_confidence=int(pick("min_phone_confidence", base.min_phone_confidence)),
            auto_create_lead=bool(pick("auto_create_lead", base.auto_create_lead)),
            enable_residential_leads=bool(pick("enable_residential_leads", base.enable_residential_leads)),
            commercial_only_routing=bool(pick("commercial_only_routing", base.commercial_only_routing)),
            phone_required_routing=bool(pick("phone_required_routing", base.phone_required_routing)),
            nightly_export=bool(pick("nightly_export", base.nightly_export)),
            high_priority_severity_margin=base.high_priority_severity_margin,
            high_priority_probability_margin=base.high_priority_probability_margin,
        )

    def to_record(self) -> dict[str, Any]:
        """Columns persisted in admin_settings (margins are process config)."""
        return {
            "min_severity": self.min_severity,
            "min_claim_probability": self.min_claim_probability,
            "min_income_percentile": self.min_income_percentile,
            "min_phone_confidence": self.min_phone_confidence,
            "auto_create_lead": self.auto_create_lead,
            "enable_residential_leads": self.enable_residential_leads,
            "commercial_only_routing": self.commercial_only_routing,
            "phone_required_routing": self.phone_required_routing,
            "nightly_export": self.nightly_export,
        }


@dataclass
class AppConfig:
    """Main application configuration."""
    supabase: SupabaseConfig
    thresholds: ThresholdConfig

    # Application settings
    admission_lookback_hours: int = 24
    log_dir: str = "/var/log/loss-locator"
    dashboard_port: int = 8080
    dashboard_host: str = "127.0.0.1"
    debug_mode: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            supabase=SupabaseConfig.from_env(),
            thresholds=ThresholdConfig.from_env(),
            admission_lookback_hours=int(os.getenv("ADMISSION_LOOKBACK_HOURS", "24")),
            log_dir=os.getenv("LOG_DIR", "/var/log/loss-locator"),
            dashboard_port=int(os.getenv("DASHBOARD_PORT", "8080")),
            dashboard_host=os.getenv("DASHBOARD_HOST", "127.0.0.1"),
            debug_mode=os.getenv("DEBUG_MODE", "false").lower() == "true",
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        url_result = validate_supabase_url(self.supabase.url)
        if not url_result.valid:
            errors.append(f"SUPABASE_URL: {url_result.message}")

        key_result = validate_supabase_key(self.supabase.service_key)
        if not key_result.valid:
            errors.append(f"SUPABASE_SERVICE_KEY: {key_result.message}")

        if self.admission_lookback_hours <= 0:
            errors.append("ADMISSION_LOOKBACK_HOURS must be positive")

        return errors


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    # Try to load .env file if it exists
    env_file = Path(__file__).parent.parent / ".env"
    if env_file.exists():
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    os.environ.setdefault(key.strip(), value.strip().strip('"\''))

    return AppConfig.from_env()
