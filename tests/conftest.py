"""Shared fixtures: an in-memory, etag-honoring policy store."""

import os
from dataclasses import replace
from typing import Callable, Optional

import pytest

from gcloud_wif.policy_store import PolicyStore
from gcloud_wif.reconcile import Reconciler
from gcloud_wif.types import (
    DesiredState,
    EtagConflictError,
    Policy,
    ResourceNotFoundError,
    legacy_principal,
    principal_set,
)

PROJECT_NUMBER = "123456789012"
POOL_ID = "github-pool"
ORG = "acme"
SA1 = "projects/ci-project/serviceAccounts/github-ci@ci-project.iam.gserviceaccount.com"
PROJECT = "projects/ci-project"

LEGACY = legacy_principal(PROJECT_NUMBER, POOL_ID, ORG)

manual_test = pytest.mark.skipif(
    not os.getenv("GCLOUD_WIF_MANUAL_TESTS"),
    reason="Manual test - requires GCP credentials. Set GCLOUD_WIF_MANUAL_TESTS=1 to run.",
)


def P(repo: str) -> str:
    """Principal for ``acme/{repo}``."""
    return principal_set(PROJECT_NUMBER, POOL_ID, ORG, repo)


class FakePolicyStore(PolicyStore):
    """Keeps policies in memory and rejects writes carrying a stale etag.

    ``failures`` maps ``(action, principal)`` (action is ``"add"``,
    ``"remove"``) or ``("get", resource)`` to a list of exceptions raised, in
    order, before the call is allowed through. ``before_write`` runs once
    ahead of the next write, to simulate a concurrent writer.
    """

    def __init__(self):
        self.policies: dict[str, Policy] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.failures: dict[tuple[str, str], list[Exception]] = {}
        self.before_write: Optional[Callable[["FakePolicyStore"], None]] = None
        self.reads = 0
        self._counter = 0

    def seed(self, resource: str, bindings: dict[str, set[str]]) -> None:
        self.policies[resource] = Policy(resource, bindings, etag=self._next_etag())

    def members(self, resource: str, role: str) -> frozenset[str]:
        return self.policies[resource].members(role)

    def external_change(self, resource: str, role: str, *, add=(), remove=()) -> None:
        """Modify a stored policy as another writer would, bumping its etag."""
        policy = self.policies[resource]
        members = (policy.members(role) | set(add)) - set(remove)
        bindings = dict(policy.bindings)
        bindings[role] = members
        self.policies[resource] = replace(policy, bindings=bindings, etag=self._next_etag())

    def writes(self, action: Optional[str] = None) -> list[tuple[str, str, str]]:
        return [c for c in self.calls if action is None or c[0] == action]

    def get_policy(self, resource: str) -> Policy:
        self.reads += 1
        self._maybe_fail(("get", resource))
        if resource not in self.policies:
            raise ResourceNotFoundError(f"{resource} was not found")
        return self.policies[resource]

    def set_policy(self, policy: Policy) -> Policy:
        if self.before_write is not None:
            hook, self.before_write = self.before_write, None
            hook(self)
        stored = self.policies.get(policy.resource)
        if stored is None:
            raise ResourceNotFoundError(f"{policy.resource} was not found")
        if stored.etag != policy.etag:
            raise EtagConflictError(f"Concurrent policy change on {policy.resource}")
        updated = replace(policy, etag=self._next_etag())
        self.policies[policy.resource] = updated
        return updated

    def add_binding(self, resource, role, principal, policy):
        self._maybe_fail(("add", principal))
        updated = super().add_binding(resource, role, principal, policy)
        self.calls.append(("add", role, principal))
        return updated

    def remove_binding(self, resource, role, principal, policy):
        self._maybe_fail(("remove", principal))
        updated = super().remove_binding(resource, role, principal, policy)
        self.calls.append(("remove", role, principal))
        return updated

    def _maybe_fail(self, key: tuple[str, str]) -> None:
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)

    def _next_etag(self) -> str:
        self._counter += 1
        return f"BwX{self._counter:04d}"


@pytest.fixture
def store() -> FakePolicyStore:
    return FakePolicyStore()


@pytest.fixture
def reconciler(store) -> Reconciler:
    return Reconciler(store, backoff_factor=0, max_tries=3)


@pytest.fixture
def state() -> DesiredState:
    return DesiredState(
        project_id="ci-project",
        project_number=PROJECT_NUMBER,
        github_org=ORG,
        repositories=("repo-a", "repo-b"),
        pool_id=POOL_ID,
        provider_id="github-oidc-v2",
        service_account_name="github-ci",
    )
