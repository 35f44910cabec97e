"""Tests for the policy store contract and HTTP error translation."""

import httplib2
import pytest
from conftest import SA1, P
from googleapiclient.errors import HttpError

from gcloud_wif.policy_store import translate_error
from gcloud_wif.types import (
    WORKLOAD_IDENTITY_USER,
    AlreadySatisfied,
    EtagConflictError,
    PermissionDeniedError,
    Policy,
    ResourceNotFoundError,
    TransientError,
    WifError,
)


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "boom"}}')


@pytest.mark.parametrize(
    "status, expected",
    [
        (404, ResourceNotFoundError),
        (403, PermissionDeniedError),
        (409, EtagConflictError),
        (412, EtagConflictError),
        (429, TransientError),
        (503, TransientError),
    ],
)
def test_translate_http_status(status, expected):
    translated = translate_error(http_error(status), SA1)

    assert isinstance(translated, expected)
    assert SA1 in str(translated)


def test_unknown_status_is_returned_unchanged():
    error = http_error(400)

    assert translate_error(error, SA1) is error


def test_network_failure_is_transient():
    assert isinstance(translate_error(ConnectionError("reset"), SA1), TransientError)


def test_add_existing_binding_is_already_satisfied(store):
    store.seed(SA1, {WORKLOAD_IDENTITY_USER: {P("repoA")}})
    policy = store.get_policy(SA1)

    with pytest.raises(AlreadySatisfied) as excinfo:
        store.add_binding(SA1, WORKLOAD_IDENTITY_USER, P("repoA"), policy)

    assert excinfo.value.etag == policy.etag
    assert store.writes() == []


def test_remove_absent_binding_is_already_satisfied(store):
    store.seed(SA1, {})

    with pytest.raises(AlreadySatisfied):
        store.remove_binding(SA1, WORKLOAD_IDENTITY_USER, P("repoA"), store.get_policy(SA1))


def test_write_with_stale_snapshot_conflicts(store):
    store.seed(SA1, {})
    stale = store.get_policy(SA1)
    store.external_change(SA1, WORKLOAD_IDENTITY_USER, add={P("other")})

    with pytest.raises(EtagConflictError):
        store.add_binding(SA1, WORKLOAD_IDENTITY_USER, P("repoA"), stale)


def test_snapshot_must_match_resource(store):
    with pytest.raises(WifError):
        store.add_binding(SA1, WORKLOAD_IDENTITY_USER, P("repoA"), Policy("projects/elsewhere"))
