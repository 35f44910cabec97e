"""Internal helpers to construct Google API service clients.

These helpers centralize `googleapiclient.discovery.build` usage to keep
options consistent across the codebase. They are intentionally private; the
public API surface remains in `policy_store.py`.
"""

from __future__ import annotations

from google.auth.credentials import Credentials
from googleapiclient import discovery


def crm_v1(credentials: Credentials):
    """Cloud Resource Manager v1 service client."""
    return discovery.build("cloudresourcemanager", "v1", credentials=credentials, cache_discovery=False)


def iam_v1(credentials: Credentials):
    """IAM v1 service client."""
    return discovery.build("iam", "v1", credentials=credentials, cache_discovery=False)
