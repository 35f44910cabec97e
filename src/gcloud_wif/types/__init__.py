"""Public exports for gcloud_wif types."""

from __future__ import annotations

from .constants import (
    DEFAULT_PROJECT_ROLES,
    DEFAULT_SERVICE_ACCOUNT_ROLES,
    SERVICE_ACCOUNT_TOKEN_CREATOR,
    STORAGE_ADMIN,
    WORKLOAD_IDENTITY_USER,
    _REQUIRED_APIS,
)
from .exceptions import (
    AlreadySatisfied,
    ConfigError,
    EtagConflictError,
    GCloudError,
    PermissionDeniedError,
    ResourceNotFoundError,
    TransientError,
    WifError,
)
from .policy import Policy
from .principal import is_legacy_principal, legacy_principal, principal_set
from .result import Drift, Outcome, PrincipalOutcome, ReconcileResult, VerificationReport
from .state import DesiredState, ReconcileRequest

__all__ = [
    "_REQUIRED_APIS",
    "AlreadySatisfied",
    "ConfigError",
    "DEFAULT_PROJECT_ROLES",
    "DEFAULT_SERVICE_ACCOUNT_ROLES",
    "DesiredState",
    "Drift",
    "EtagConflictError",
    "GCloudError",
    "Outcome",
    "PermissionDeniedError",
    "Policy",
    "PrincipalOutcome",
    "ReconcileRequest",
    "ReconcileResult",
    "ResourceNotFoundError",
    "SERVICE_ACCOUNT_TOKEN_CREATOR",
    "STORAGE_ADMIN",
    "TransientError",
    "VerificationReport",
    "WORKLOAD_IDENTITY_USER",
    "WifError",
    "is_legacy_principal",
    "legacy_principal",
    "principal_set",
]
