"""Custom exceptions for gcloud_wif."""

from __future__ import annotations

from typing import Optional


class WifError(Exception):
    """Base class for errors raised by gcloud_wif."""


class ConfigError(WifError):
    """Raised when the desired-state configuration is malformed."""


class GCloudError(WifError):
    """Raised when a gcloud command fails."""


class ResourceNotFoundError(WifError):
    """Raised when a reconciliation target (service account, project) does not exist."""


class PermissionDeniedError(WifError):
    """Raised when the caller lacks rights on a resource. Never retried."""


class TransientError(WifError):
    """Raised for rate limiting, temporary unavailability and network failures."""


class EtagConflictError(WifError):
    """Raised when a policy write carried a stale etag.

    The write must be redone from a freshly fetched policy, never replayed.
    """


class AlreadySatisfied(WifError):
    """Soft signal: the binding change is already in effect.

    Raised by a policy store when asked to add a present principal or remove an
    absent one. Reconciliation records it as a no-op, not a failure.
    """

    def __init__(self, message: str, *, etag: Optional[str] = None):
        super().__init__(message)
        self.etag = etag


__all__ = [
    "AlreadySatisfied",
    "ConfigError",
    "EtagConflictError",
    "GCloudError",
    "PermissionDeniedError",
    "ResourceNotFoundError",
    "TransientError",
    "WifError",
]
