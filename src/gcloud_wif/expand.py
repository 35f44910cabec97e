"""Expand a DesiredState into reconcile requests."""

from __future__ import annotations

from typing import Iterable

from gcloud_wif.types import DesiredState, ReconcileRequest, principal_set
from gcloud_wif.types.constants import OPERATOR_ROLES
from gcloud_wif.types.principal import service_account_member, user_member


def repository_principals(state: DesiredState) -> frozenset[str]:
    """One ``principalSet`` member per distinct repository."""
    project_number = state.require_project_number()
    return frozenset(
        principal_set(project_number, state.pool_id, state.github_org, repo) for repo in state.repositories
    )


def expand(state: DesiredState) -> list[ReconcileRequest]:
    """Turn ``state`` into one request per (resource, role) pair.

    Repository principals are reconciled exclusively on the service account,
    so stale members (including a legacy ``{org}/*`` binding) are removed.
    Project roles are usually shared with other members and are only added.
    The result is sorted, so list order and duplicates in ``state.repositories``
    do not matter.
    """
    principals = repository_principals(state)
    sa_member = frozenset({service_account_member(state.service_account_email)})

    requests = [
        ReconcileRequest(state.service_account_resource, role, principals, exclusive=True)
        for role in set(state.service_account_roles)
    ]
    requests.extend(
        ReconcileRequest(state.project_resource, role, sa_member, exclusive=False)
        for role in set(state.project_roles)
    )
    return _sorted(requests)


def operator_requests(state: DesiredState, account: str) -> list[ReconcileRequest]:
    """Admin roles the operating account needs on the project to manage pools and policies."""
    if account.endswith(".gserviceaccount.com"):
        member = frozenset({service_account_member(account)})
    else:
        member = frozenset({user_member(account)})
    return _sorted(ReconcileRequest(state.project_resource, role, member, exclusive=False) for role in OPERATOR_ROLES)


def _sorted(requests: Iterable[ReconcileRequest]) -> list[ReconcileRequest]:
    return sorted(requests, key=lambda r: (r.resource, r.role))


__all__ = ["expand", "operator_requests", "repository_principals"]
