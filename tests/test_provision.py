"""Tests for the provisioning flow with gcloud calls replaced through monkeypatch."""

from dataclasses import replace

import pytest
from conftest import LEGACY, PROJECT, SA1, P

from gcloud_wif import provision
from gcloud_wif.types import STORAGE_ADMIN, WORKLOAD_IDENTITY_USER, GCloudError
from gcloud_wif.types.constants import PROJECT_IAM_ADMIN, WORKLOAD_IDENTITY_POOL_ADMIN


def _no_gcloud(args, **kwargs):
    raise AssertionError(f"unexpected gcloud call: {args}")


def test_ensure_pool_reuses_existing(monkeypatch, state):
    monkeypatch.setattr(provision, "exists", lambda args: True)
    monkeypatch.setattr(provision, "run_gcloud", _no_gcloud)

    assert provision.ensure_pool(state) == ("github-pool", False)


def test_ensure_provider_restricts_to_org(monkeypatch, state):
    calls = []
    monkeypatch.setattr(provision, "exists", lambda args: False)
    monkeypatch.setattr(provision, "run_gcloud", lambda args, **kwargs: calls.append(args))

    name, created = provision.ensure_provider(state)

    assert (name, created) == ("github-oidc-v2", True)
    assert "--attribute-condition=assertion.repository.startsWith('acme/')" in calls[0]
    assert "--issuer-uri=https://token.actions.githubusercontent.com" in calls[0]


def test_dry_run_creates_nothing(monkeypatch, state):
    monkeypatch.setattr(provision, "exists", lambda args: False)
    monkeypatch.setattr(provision, "run_gcloud", _no_gcloud)

    assert provision.ensure_service_account(state, dry_run=True) == (
        "github-ci@ci-project.iam.gserviceaccount.com",
        True,
    )


@pytest.fixture
def existing_project(monkeypatch):
    monkeypatch.setattr(provision, "check_authentication", lambda: "me@example.com")
    monkeypatch.setattr(provision, "choose_billing_account", lambda configured=None: "0X0X0X-0X0X0X-0X0X0X")
    monkeypatch.setattr(provision, "choose_organization", lambda configured=None: None)
    monkeypatch.setattr(provision, "ensure_project", lambda state, org_id, dry_run=False: (state.project_id, False))
    monkeypatch.setattr(provision, "link_billing_account", lambda project_id, billing_id, dry_run=False: False)
    monkeypatch.setattr(provision, "enable_apis", lambda project_id, dry_run=False: None)
    monkeypatch.setattr(provision, "exists", lambda args: True)
    monkeypatch.setattr(provision, "run_gcloud", _no_gcloud)
    sleeps = []
    monkeypatch.setattr(provision.time, "sleep", sleeps.append)
    return sleeps


def test_setup_migrates_legacy_binding(existing_project, store, state):
    store.seed(PROJECT, {STORAGE_ADMIN: {"user:human@example.com"}})
    store.seed(SA1, {WORKLOAD_IDENTITY_USER: {LEGACY}})

    outcome = provision.setup(state, assume_yes=True, store=store)

    assert outcome.ok
    assert outcome.created == []
    assert outcome.report.converged
    assert outcome.report.unexpected == []
    assert store.members(SA1, WORKLOAD_IDENTITY_USER) == {P("repo-a"), P("repo-b")}
    assert store.members(PROJECT, PROJECT_IAM_ADMIN) == {"user:me@example.com"}
    assert "user:human@example.com" in store.members(PROJECT, STORAGE_ADMIN)


def test_setup_rerun_is_idempotent(existing_project, store, state):
    store.seed(PROJECT, {})
    store.seed(SA1, {})

    provision.setup(state, assume_yes=True, store=store)
    writes = len(store.writes())
    outcome = provision.setup(state, assume_yes=True, store=store)

    assert len(store.writes()) == writes
    assert all(r.write_count == 0 for r in outcome.results)


def test_setup_waits_after_granting_operator_roles(existing_project, store, state):
    store.seed(PROJECT, {})
    store.seed(SA1, {})

    provision.setup(state, assume_yes=True, store=store)

    assert existing_project == [provision.PROPAGATION_DELAY]


def test_setup_does_not_wait_when_operator_roles_exist(existing_project, store, state):
    store.seed(PROJECT, {
        PROJECT_IAM_ADMIN: {"user:me@example.com"},
        WORKLOAD_IDENTITY_POOL_ADMIN: {"user:me@example.com"},
    })
    store.seed(SA1, {})

    provision.setup(state, assume_yes=True, store=store)

    assert existing_project == []


def test_setup_fails_when_project_number_is_unknown(existing_project, monkeypatch, store, state):
    monkeypatch.setattr(provision, "resolve_project_number", lambda project_id: None)
    store.seed(PROJECT, {})

    with pytest.raises(GCloudError, match="project number"):
        provision.setup(replace(state, project_number=None), assume_yes=True, store=store)

    # The pool, provider and service account steps were never reached.
    assert store.writes() == [
        ("add", WORKLOAD_IDENTITY_POOL_ADMIN, "user:me@example.com"),
        ("add", PROJECT_IAM_ADMIN, "user:me@example.com"),
    ]
