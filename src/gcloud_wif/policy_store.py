"""IAM policy stores: the read/conditional-write boundary to the control plane."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NoReturn, Optional

import google.auth
import google.auth.exceptions
from google.auth.credentials import Credentials
from googleapiclient.errors import HttpError

from gcloud_wif._helpers import _get_iam_policy, _set_iam_policy
from gcloud_wif.types import (
    AlreadySatisfied,
    EtagConflictError,
    PermissionDeniedError,
    Policy,
    ResourceNotFoundError,
    TransientError,
    WifError,
)

_CONFLICT_STATUSES = frozenset({409, 412})
_TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})
_API_ERRORS = (HttpError, google.auth.exceptions.TransportError, ConnectionError, TimeoutError)


class PolicyStore(ABC):
    """Abstract IAM policy store.

    Subclasses provide an unconditional read and an etag-conditional write;
    the single-member binding changes are built on top of those two.
    """

    @abstractmethod
    def get_policy(self, resource: str) -> Policy:
        """Fetch the current policy of ``resource``.

        Raises
        ------
        ResourceNotFoundError, PermissionDeniedError, TransientError
        """

    @abstractmethod
    def set_policy(self, policy: Policy) -> Policy:
        """Write ``policy`` if its etag is still current and return the stored policy.

        Raises
        ------
        EtagConflictError
            If the policy changed since ``policy`` was read.
        ResourceNotFoundError, PermissionDeniedError, TransientError
        """

    def add_binding(self, resource: str, role: str, principal: str, policy: Policy) -> Policy:
        """Bind ``principal`` to ``role`` on top of the ``policy`` snapshot.

        Raises :class:`AlreadySatisfied` without writing when the snapshot
        already holds the binding.
        """
        _check_snapshot(resource, policy)
        if principal in policy.members(role):
            raise AlreadySatisfied(f"{principal} already holds {role} on {resource}", etag=policy.etag)
        return self.set_policy(policy.with_member(role, principal))

    def remove_binding(self, resource: str, role: str, principal: str, policy: Policy) -> Policy:
        """Unbind ``principal`` from ``role`` on top of the ``policy`` snapshot.

        Raises :class:`AlreadySatisfied` without writing when the binding is absent.
        """
        _check_snapshot(resource, policy)
        if principal not in policy.members(role):
            raise AlreadySatisfied(f"{principal} does not hold {role} on {resource}", etag=policy.etag)
        return self.set_policy(policy.without_member(role, principal))


class IamPolicyStore(PolicyStore):
    """Policy store backed by the IAM v1 and Cloud Resource Manager v1 APIs.

    Service accounts (``projects/{id}/serviceAccounts/{email}``) are read and
    written through IAM, projects (``projects/{id}``) through Cloud Resource
    Manager. HTTP failures are translated into the package exceptions.

    Parameters
    ----------
    credentials : Credentials, optional
        Explicit credentials. When omitted, Application Default Credentials are used.
    """

    def __init__(self, credentials: Optional[Credentials] = None):
        self._credentials = credentials

    def _get_credentials(self) -> Credentials:
        """Get credentials for API calls (explicit > stored ADC)."""
        if self._credentials is None:
            self._credentials, _ = google.auth.default(
                scopes=["https://www.googleapis.com/auth/cloud-platform"]
            )
        return self._credentials

    def get_policy(self, resource: str) -> Policy:
        creds = self._get_credentials()
        try:
            payload = _get_iam_policy(credentials=creds, resource_name=resource)
        except _API_ERRORS as e:
            _reraise(e, resource)
        return Policy.from_api(resource, payload)

    def set_policy(self, policy: Policy) -> Policy:
        creds = self._get_credentials()
        try:
            payload = _set_iam_policy(credentials=creds, resource_name=policy.resource, policy=policy.to_api())
        except _API_ERRORS as e:
            _reraise(e, policy.resource)
        return Policy.from_api(policy.resource, payload)


def translate_error(error: Exception, resource: str) -> Exception:
    """Map an API or transport failure onto the package error taxonomy.

    HTTP statuses outside the taxonomy come back unchanged so callers re-raise
    the original ``HttpError``.
    """
    if not isinstance(error, HttpError):
        return TransientError(f"Network failure while accessing {resource}: {error}")

    status = int(getattr(error.resp, "status", 0) or 0)
    detail = _error_detail(error)
    if status == 404:
        return ResourceNotFoundError(f"{resource} was not found: {detail}")
    if status == 403:
        return PermissionDeniedError(f"Permission denied on {resource}: {detail}")
    if status in _CONFLICT_STATUSES:
        return EtagConflictError(f"Concurrent policy change on {resource}: {detail}")
    if status in _TRANSIENT_STATUSES:
        return TransientError(f"Temporary failure ({status}) on {resource}: {detail}")
    return error


def _reraise(error: Exception, resource: str) -> NoReturn:
    translated = translate_error(error, resource)
    if translated is error:
        raise error
    raise translated from error


def _error_detail(error: HttpError) -> str:
    return getattr(error, "reason", None) or str(error)


def _check_snapshot(resource: str, policy: Policy) -> None:
    if policy.resource != resource:
        raise WifError(f"Policy snapshot of {policy.resource} cannot be used to modify {resource}")


__all__ = ["IamPolicyStore", "PolicyStore", "translate_error"]
