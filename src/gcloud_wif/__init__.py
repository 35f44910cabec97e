"""Workload Identity Federation between GitHub Actions and Google Cloud"""

from gcloud_wif.config import load_config
from gcloud_wif.expand import expand, repository_principals
from gcloud_wif.policy_store import IamPolicyStore, PolicyStore
from gcloud_wif.reconcile import Reconciler
from gcloud_wif.types import (
    DesiredState,
    Outcome,
    Policy,
    ReconcileRequest,
    ReconcileResult,
    VerificationReport,
    WifError,
    legacy_principal,
    principal_set,
)
from gcloud_wif.verify import verify

__version__ = "0.1.0-alpha"


__all__ = [
    "__version__",
    "expand",
    "load_config",
    "principal_set",
    "legacy_principal",
    "repository_principals",
    "verify",
    "DesiredState",
    "IamPolicyStore",
    "Outcome",
    "Policy",
    "PolicyStore",
    "ReconcileRequest",
    "ReconcileResult",
    "Reconciler",
    "VerificationReport",
    "WifError",
]
