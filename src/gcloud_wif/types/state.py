"""Desired-state configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_PROJECT_ROLES, DEFAULT_SERVICE_ACCOUNT_ROLES
from .principal import provider_resource_name


@dataclass(frozen=True)
class DesiredState:
    """Everything one run needs to know about the target setup.

    Built once per invocation (usually by :func:`gcloud_wif.config.load_config`)
    and passed by value; nothing in the package keeps its own copy.

    Attributes
    ----------
    project_id : str
        Project hosting the pool, provider and service account.
    github_org : str
        GitHub organization owning the repositories.
    repositories : tuple[str, ...]
        Repository names (without the organization). May contain duplicates;
        expansion collapses them.
    pool_id, provider_id, service_account_name : str
        Workload identity pool, OIDC provider and service account ids.
    project_number : str, optional
        Numeric project number. Required to build principals; resolved from
        gcloud during ``setup`` when the configuration omits it.
    project_name : str
        Display name used when the project is created.
    billing_account_id, org_id : str, optional
        Used only by provisioning.
    service_account_roles : tuple[str, ...]
        Roles every repository principal must hold on the service account.
    project_roles : tuple[str, ...]
        Roles the service account must hold on the project.
    """

    project_id: str
    github_org: str
    repositories: tuple[str, ...]
    pool_id: str = "github-pool"
    provider_id: str = "github-oidc"
    service_account_name: str = "github-ci"
    project_number: Optional[str] = None
    project_name: str = ""
    billing_account_id: Optional[str] = None
    org_id: Optional[str] = None
    service_account_roles: tuple[str, ...] = DEFAULT_SERVICE_ACCOUNT_ROLES
    project_roles: tuple[str, ...] = DEFAULT_PROJECT_ROLES

    @property
    def service_account_email(self) -> str:
        return f"{self.service_account_name}@{self.project_id}.iam.gserviceaccount.com"

    @property
    def service_account_resource(self) -> str:
        return f"projects/{self.project_id}/serviceAccounts/{self.service_account_email}"

    @property
    def project_resource(self) -> str:
        return f"projects/{self.project_id}"

    @property
    def provider_name(self) -> str:
        """Full provider resource name for ``google-github-actions/auth``."""
        return provider_resource_name(self.require_project_number(), self.pool_id, self.provider_id)

    def unique_repositories(self) -> list[str]:
        """Repository names with duplicates removed, sorted."""
        return sorted(set(self.repositories))

    def require_project_number(self) -> str:
        if not self.project_number:
            raise ValueError(
                f"The project number of '{self.project_id}' is unknown. "
                "Set project_number in the configuration or run 'setup' to resolve it."
            )
        return self.project_number


@dataclass(frozen=True)
class ReconcileRequest:
    """One (resource, role) pair and the complete principal set it must converge to.

    ``exclusive`` requests remove every bound principal that is not desired.
    Non-exclusive requests only add, leaving foreign members of a shared role alone.
    """

    resource: str
    role: str
    desired: frozenset[str]
    exclusive: bool = True


__all__ = ["DesiredState", "ReconcileRequest"]
