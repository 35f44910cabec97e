"""Tests for Policy parsing and serialization."""

import pytest

from gcloud_wif.types import Policy

RESOURCE = "projects/ci-project"


def test_from_api_merges_repeated_roles_and_duplicates():
    policy = Policy.from_api(
        RESOURCE,
        {
            "version": 1,
            "etag": "BwXabc",
            "bindings": [
                {"role": "roles/viewer", "members": ["user:a@example.com", "user:a@example.com"]},
                {"role": "roles/viewer", "members": ["user:b@example.com"]},
                {"role": "roles/owner", "members": ["user:o@example.com"]},
            ],
        },
    )

    assert policy.members("roles/viewer") == {"user:a@example.com", "user:b@example.com"}
    assert policy.roles() == ["roles/owner", "roles/viewer"]
    assert policy.etag == "BwXabc"


def test_missing_role_is_empty():
    assert Policy.from_api(RESOURCE, {}).members("roles/viewer") == frozenset()


def test_with_and_without_member_do_not_mutate():
    original = Policy(RESOURCE, {"roles/viewer": {"user:a@example.com"}}, etag="e1")

    added = original.with_member("roles/viewer", "user:b@example.com")
    removed = added.without_member("roles/viewer", "user:a@example.com")

    assert original.members("roles/viewer") == {"user:a@example.com"}
    assert added.members("roles/viewer") == {"user:a@example.com", "user:b@example.com"}
    assert removed.members("roles/viewer") == {"user:b@example.com"}
    assert removed.etag == "e1"


def test_empty_role_is_dropped_on_write():
    policy = Policy(RESOURCE, {"roles/viewer": {"user:a@example.com"}}, etag="e1")

    body = policy.without_member("roles/viewer", "user:a@example.com").to_api()

    assert body["bindings"] == []
    assert body["etag"] == "e1"


def test_conditional_bindings_survive_round_trip():
    conditional = {
        "role": "roles/storage.objectViewer",
        "members": ["user:c@example.com"],
        "condition": {"title": "expires", "expression": "request.time < timestamp('2030-01-01T00:00:00Z')"},
    }
    policy = Policy.from_api(
        RESOURCE,
        {
            "version": 3,
            "etag": "e2",
            "bindings": [conditional, {"role": "roles/viewer", "members": ["user:a@example.com"]}],
        },
    )

    assert policy.members("roles/storage.objectViewer") == frozenset()

    body = policy.with_member("roles/viewer", "user:b@example.com").to_api()

    assert body["version"] == 3
    assert conditional in body["bindings"]
    assert {"role": "roles/viewer", "members": ["user:a@example.com", "user:b@example.com"]} in body["bindings"]


def test_policies_compare_by_value_but_are_unhashable():
    a = Policy(RESOURCE, {"roles/viewer": {"user:a@example.com"}}, etag="e1")
    b = Policy(RESOURCE, {"roles/viewer": ["user:a@example.com"]}, etag="e1")

    assert a == b
    with pytest.raises(TypeError):
        hash(a)
