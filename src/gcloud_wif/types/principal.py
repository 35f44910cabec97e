"""Principal identifiers for GitHub repositories federated through a workload identity pool."""

from __future__ import annotations

from .constants import IAM_AUTHORITY

WILDCARD = "*"

_REPOSITORY_ATTRIBUTE = "attribute.repository"


def pool_resource_name(project_number: str, pool_id: str) -> str:
    """Return ``projects/{number}/locations/global/workloadIdentityPools/{pool}``."""
    return f"projects/{project_number}/locations/global/workloadIdentityPools/{pool_id}"


def provider_resource_name(project_number: str, pool_id: str, provider_id: str) -> str:
    """Return the provider resource name used as ``workload_identity_provider`` in workflows."""
    return f"{pool_resource_name(project_number, pool_id)}/providers/{provider_id}"


def principal_set(project_number: str, pool_id: str, org: str, repository: str) -> str:
    """Build the ``principalSet://`` member granting access to one repository.

    Parameters
    ----------
    project_number : str
        Numeric project number hosting the pool (not the project id).
    pool_id : str
        Workload identity pool id.
    org : str
        GitHub organization (or user) owning the repository.
    repository : str
        Repository name without the organization prefix.

    Returns
    -------
    str
        ``principalSet://iam.googleapis.com/projects/{number}/locations/global/``
        ``workloadIdentityPools/{pool}/attribute.repository/{org}/{repository}``

    Raises
    ------
    ValueError
        If ``repository`` is empty or contains a wildcard. IAM accepts such a
        member at write time but never matches it as a pattern.
    """
    if not repository or WILDCARD in repository or WILDCARD in org:
        raise ValueError(
            f"Repository '{org}/{repository}' is not a concrete repository name; "
            "wildcard principals do not authorize and must not be bound."
        )
    return _principal(project_number, pool_id, f"{org}/{repository}")


def legacy_principal(project_number: str, pool_id: str, org: str) -> str:
    """Return the org-wide ``{org}/*`` member written by older single-binding setups."""
    return _principal(project_number, pool_id, f"{org}/{WILDCARD}")


def is_legacy_principal(principal: str) -> bool:
    """True for ``principalSet`` members whose repository segment contains a wildcard."""
    if not principal.startswith("principalSet://"):
        return False
    marker = f"/{_REPOSITORY_ATTRIBUTE}/"
    if marker not in principal:
        return False
    return WILDCARD in principal.split(marker, 1)[1]


def service_account_member(email: str) -> str:
    return f"serviceAccount:{email}"


def user_member(email: str) -> str:
    return f"user:{email}"


def _principal(project_number: str, pool_id: str, repository_path: str) -> str:
    return (
        f"principalSet://{IAM_AUTHORITY}/{pool_resource_name(project_number, pool_id)}"
        f"/{_REPOSITORY_ATTRIBUTE}/{repository_path}"
    )


__all__ = [
    "WILDCARD",
    "is_legacy_principal",
    "legacy_principal",
    "pool_resource_name",
    "principal_set",
    "provider_resource_name",
    "service_account_member",
    "user_member",
]
