"""Internal helper functions."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from google.auth.credentials import Credentials

_SERVICE_ACCOUNT_RESOURCE = re.compile(r"^projects/[^/]+/serviceAccounts/[^/]+$")
_PROJECT_RESOURCE = re.compile(r"^projects/(?P<project_id>[^/]+)$")


def _get_iam_policy(*, credentials: "Credentials", resource_name: str) -> dict:
    """Fetch the IAM policy for a service account or a project.

    Parameters
    ----------
    credentials : Credentials
        Materialized credentials to authenticate the request.
    resource_name : str
        ``projects/{id}/serviceAccounts/{email}`` (IAM v1) or
        ``projects/{id}`` (Cloud Resource Manager v1).

    Returns
    -------
    dict
        The IAM policy, including its ``etag``.
    """
    from gcloud_wif._clients import crm_v1, iam_v1

    if _SERVICE_ACCOUNT_RESOURCE.match(resource_name):
        accounts = iam_v1(credentials).projects().serviceAccounts()
        return accounts.getIamPolicy(resource=resource_name, options_requestedPolicyVersion=3).execute()
    match = _PROJECT_RESOURCE.match(resource_name)
    if match:
        projects = crm_v1(credentials).projects()
        return projects.getIamPolicy(
            resource=match.group("project_id"), body={"options": {"requestedPolicyVersion": 3}}
        ).execute()
    raise ValueError(f"Unsupported resource_name: {resource_name}")


def _set_iam_policy(*, credentials: "Credentials", resource_name: str, policy: dict) -> dict:
    """Write ``policy`` to the resource. The body's etag makes the write conditional."""
    from gcloud_wif._clients import crm_v1, iam_v1

    if _SERVICE_ACCOUNT_RESOURCE.match(resource_name):
        accounts = iam_v1(credentials).projects().serviceAccounts()
        return accounts.setIamPolicy(resource=resource_name, body={"policy": policy}).execute()
    match = _PROJECT_RESOURCE.match(resource_name)
    if match:
        projects = crm_v1(credentials).projects()
        return projects.setIamPolicy(resource=match.group("project_id"), body={"policy": policy}).execute()
    raise ValueError(f"Unsupported resource_name: {resource_name}")
