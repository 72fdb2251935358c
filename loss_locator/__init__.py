"""
Loss Locator Pro - lead admission and routing service.

Decides which loss events become leads, filters them for routing, and moves
each lead through the assignment workflow.
"""

__version__ = "1.0.0"

from .config import (
    AppConfig,
    SupabaseConfig,
    ThresholdConfig,
    load_config,
)
from .errors import (
    RoutingError,
    ValidationError,
    InvalidTransition,
    DuplicateAdmissionConflict,
    ConcurrentModificationConflict,
    DependencyUnavailable,
    PermissionDenied,
)
from .models import (
    LossEvent,
    LossProperty,
    ZipDemographic,
    RoutingQueueEntry,
    LeadStatus,
    AssigneeType,
    Priority,
)
from .classifier import AdmissionDecision, classify_for_admission, classify_for_routing
from .admission import LeadAdmissionEngine, AdmissionSummary
from .workflow import AssignmentWorkflow
from .supabase_client import SupabaseClient

__all__ = [
    # Config
    "AppConfig",
    "SupabaseConfig",
    "ThresholdConfig",
    "load_config",
    # Errors
    "RoutingError",
    "ValidationError",
    "InvalidTransition",
    "DuplicateAdmissionConflict",
    "ConcurrentModificationConflict",
    "DependencyUnavailable",
    "PermissionDenied",
    # Records
    "LossEvent",
    "LossProperty",
    "ZipDemographic",
    "RoutingQueueEntry",
    "LeadStatus",
    "AssigneeType",
    "Priority",
    # Core
    "AdmissionDecision",
    "classify_for_admission",
    "classify_for_routing",
    "LeadAdmissionEngine",
    "AdmissionSummary",
    "AssignmentWorkflow",
    "SupabaseClient",
]
