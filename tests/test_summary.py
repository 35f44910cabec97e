"""Tests for reports and the workflow snippet."""

from dataclasses import replace

import pytest
import yaml
from conftest import SA1, P

from gcloud_wif.summary import results_table, workflow_snippet
from gcloud_wif.types import WORKLOAD_IDENTITY_USER, Outcome, ReconcileResult


def test_workflow_snippet_is_valid_yaml(state):
    workflow = yaml.safe_load(workflow_snippet(state))

    job = workflow["jobs"]["deploy"]
    assert job["permissions"]["id-token"] == "write"
    auth = job["steps"][1]
    assert auth["uses"] == "google-github-actions/auth@v2"
    assert auth["with"] == {
        "workload_identity_provider": (
            "projects/123456789012/locations/global/workloadIdentityPools/github-pool/providers/github-oidc-v2"
        ),
        "service_account": "github-ci@ci-project.iam.gserviceaccount.com",
    }


def test_workflow_snippet_needs_project_number(state):
    with pytest.raises(ValueError):
        workflow_snippet(replace(state, project_number=None))


def test_results_table_has_a_row_per_principal():
    result = ReconcileResult(SA1, WORKLOAD_IDENTITY_USER)
    result.record(P("repoA"), Outcome.ADDED)
    result.record(P("repoB"), Outcome.PERMISSION_DENIED, "[403] denied")

    assert results_table([result]).row_count == 2
