"""Shared constants for gcloud_wif types."""

from __future__ import annotations

IAM_AUTHORITY = "iam.googleapis.com"

GITHUB_ISSUER_URI = "https://token.actions.githubusercontent.com"
GITHUB_ATTRIBUTE_MAPPING = (
    "google.subject=assertion.sub,"
    "attribute.repository=assertion.repository,"
    "attribute.actor=assertion.actor"
)

WORKLOAD_IDENTITY_USER = "roles/iam.workloadIdentityUser"
SERVICE_ACCOUNT_TOKEN_CREATOR = "roles/iam.serviceAccountTokenCreator"
STORAGE_ADMIN = "roles/storage.admin"
PROJECT_IAM_ADMIN = "roles/resourcemanager.projectIamAdmin"
WORKLOAD_IDENTITY_POOL_ADMIN = "roles/iam.workloadIdentityPoolAdmin"

DEFAULT_SERVICE_ACCOUNT_ROLES: tuple[str, ...] = (
    WORKLOAD_IDENTITY_USER,
    SERVICE_ACCOUNT_TOKEN_CREATOR,
)
DEFAULT_PROJECT_ROLES: tuple[str, ...] = (STORAGE_ADMIN,)
OPERATOR_ROLES: tuple[str, ...] = (
    PROJECT_IAM_ADMIN,
    WORKLOAD_IDENTITY_POOL_ADMIN,
)

_REQUIRED_APIS: tuple[str, ...] = (
    "iamcredentials.googleapis.com",
    "iam.googleapis.com",
    "cloudresourcemanager.googleapis.com",
    "sts.googleapis.com",
)

__all__ = [
    "DEFAULT_PROJECT_ROLES",
    "DEFAULT_SERVICE_ACCOUNT_ROLES",
    "GITHUB_ATTRIBUTE_MAPPING",
    "GITHUB_ISSUER_URI",
    "IAM_AUTHORITY",
    "OPERATOR_ROLES",
    "PROJECT_IAM_ADMIN",
    "SERVICE_ACCOUNT_TOKEN_CREATOR",
    "STORAGE_ADMIN",
    "WORKLOAD_IDENTITY_POOL_ADMIN",
    "WORKLOAD_IDENTITY_USER",
    "_REQUIRED_APIS",
]
