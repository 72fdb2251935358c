"""Credential format validation for Supabase settings."""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


@dataclass
class ValidationResult:
    """Result of credential validation."""
    valid: bool
    message: str
    details: Optional[dict] = None


def validate_supabase_url(url: str) -> ValidationResult:
    """Validate the Supabase project URL.

    Args:
        url: Project URL (https://<ref>.supabase.co or a self-hosted host)

    Returns:
        ValidationResult with status and message
    """
    if not url or not url.strip():
        return ValidationResult(
            valid=False,
            message="Project URL is required. Find it under Project Settings > API."
        )

    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return ValidationResult(
            valid=False,
            message="Invalid URL. Expected something like https://<project>.supabase.co"
        )

    if parsed.path not in ("", "/"):
        return ValidationResult(
            valid=False,
            message="Use the project root URL without a path (no /rest/v1).",
            details={"path": parsed.path},
        )

    return ValidationResult(
        valid=True,
        message="Project URL format looks valid. Connection will be tested on first run."
    )


def validate_supabase_key(api_key: str) -> ValidationResult:
    """Validate a Supabase API key format.

    Accepts legacy JWT keys (three dot-separated segments starting with
    'eyJ') and the newer 'sb_secret_' / 'sb_publishable_' keys.

    Args:
        api_key: Supabase service role or anon key

    Returns:
        ValidationResult with status and message
    """
    if not api_key or not api_key.strip():
        return ValidationResult(
            valid=False,
            message="API key is required. Find it under Project Settings > API."
        )

    if api_key.startswith(("sb_secret_", "sb_publishable_")):
        return ValidationResult(valid=True, message="API key format is valid.")

    if api_key.startswith("eyJ") and api_key.count(".") == 2:
        return ValidationResult(valid=True, message="API key format is valid.")

    return ValidationResult(
        valid=False,
        message="Invalid key format. Supabase keys are JWTs ('eyJ...') or start with 'sb_'."
    )
