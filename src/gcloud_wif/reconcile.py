"""Converge the principals bound to one role on one resource.

The reconciler never trusts a previous run: every call re-reads the policy,
diffs it against the complete desired principal set, and issues one
conditional write per principal that differs. Because each write is
idempotent, a call interrupted half way is finished by simply calling again.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, TypeVar

import backoff
from rich.console import Console

from gcloud_wif.policy_store import PolicyStore
from gcloud_wif.types import (
    AlreadySatisfied,
    EtagConflictError,
    Outcome,
    PermissionDeniedError,
    Policy,
    ReconcileRequest,
    ReconcileResult,
    TransientError,
    is_legacy_principal,
)

T = TypeVar("T")

DEFAULT_MAX_TRIES = 5
DEFAULT_MAX_CONFLICTS = 10


def retrying(
    func: Callable[..., T],
    *,
    max_tries: int = DEFAULT_MAX_TRIES,
    backoff_factor: float = 1.0,
    max_backoff: float = 30.0,
    console: Optional[Console] = None,
) -> Callable[..., T]:
    """Wrap ``func`` so :class:`TransientError` is retried with exponential backoff.

    After ``max_tries`` attempts the last ``TransientError`` propagates.
    """

    def _announce(details: dict) -> None:
        if console is not None:
            console.print(
                f"[yellow]Transient error, retrying in {details['wait']:.1f}s "
                f"(attempt {details['tries']}/{max_tries})...[/yellow]"
            )

    return backoff.on_exception(
        backoff.expo,
        TransientError,
        max_tries=max_tries,
        jitter=backoff.full_jitter,
        on_backoff=_announce,
        factor=backoff_factor,
        max_value=max_backoff,
    )(func)


class Reconciler:
    """Applies ``reconcile(resource, role, desired)`` against a policy store.

    Parameters
    ----------
    store : PolicyStore
        Where policies are read from and written to.
    max_tries : int
        Attempts per read or write before a transient failure is recorded.
    max_conflicts : int
        Etag conflicts tolerated per call before the remaining principals are
        recorded as failed. Each conflict triggers a fresh read.
    backoff_factor, max_backoff : float
        Exponential backoff tuning in seconds.
    dry_run : bool
        Compute and report the plan without writing.
    console : Console, optional
        Where to report each change. Silent when omitted.
    """

    def __init__(
        self,
        store: PolicyStore,
        *,
        max_tries: int = DEFAULT_MAX_TRIES,
        max_conflicts: int = DEFAULT_MAX_CONFLICTS,
        backoff_factor: float = 1.0,
        max_backoff: float = 30.0,
        dry_run: bool = False,
        console: Optional[Console] = None,
    ):
        self.store = store
        self.max_conflicts = max_conflicts
        self.dry_run = dry_run
        self.console = console
        self._retry_options = dict(
            max_tries=max_tries,
            backoff_factor=backoff_factor,
            max_backoff=max_backoff,
            console=console,
        )

    def reconcile(
        self,
        resource: str,
        role: str,
        desired: Iterable[str],
        *,
        exclusive: bool = True,
    ) -> ReconcileResult:
        """Converge the principals bound to ``role`` on ``resource`` to ``desired``.

        Parameters
        ----------
        resource : str
            Resource whose policy is reconciled.
        role : str
            The only role touched; other bindings are written back unchanged.
        desired : Iterable[str]
            The complete target principal set (not a delta). Must be non-empty.
        exclusive : bool
            When true, principals bound to ``role`` but not desired are removed.

        Returns
        -------
        ReconcileResult
            One outcome per principal that was desired or removed.

        Raises
        ------
        ValueError
            If ``desired`` is empty or holds a wildcard repository principal.
        ResourceNotFoundError
            If ``resource`` does not exist.
        """
        target = _validated(desired, role)
        # Latest outcome per principal; insertion order is report order.
        outcomes: dict[str, tuple[Outcome, Optional[str]]] = {}
        failed: set[str] = set()
        pending_removals: set[str] = set()
        conflicts = 0

        while True:
            try:
                policy = self._retrying(self.store.get_policy)(resource)
            except (PermissionDeniedError, TransientError) as e:
                unreported = sorted((target | pending_removals) - outcomes.keys())
                failed.update(_fail(outcomes, unreported, e))
                return _result(resource, role, outcomes)

            current = policy.members(role)
            # Already in effect, possibly through a concurrent writer.
            for principal in sorted((target & current) | (pending_removals - current)):
                outcomes.setdefault(principal, (Outcome.ALREADY_SATISFIED, None))

            # The full diff is recomputed on every read; only failures are not retried.
            to_add = sorted(target - current - failed)
            to_remove = sorted(current - target - failed) if exclusive else []
            pending_removals.update(to_remove)

            if self.dry_run:
                for principal in to_add:
                    outcomes[principal] = (Outcome.PLANNED_ADD, None)
                    self._report("[dim][DRY RUN] Would add", principal, role, resource)
                for principal in to_remove:
                    outcomes[principal] = (Outcome.PLANNED_REMOVE, None)
                    self._report("[dim][DRY RUN] Would remove", principal, role, resource)
                return _result(resource, role, outcomes)

            # Additions go first so a repository never loses access mid-migration.
            done: set[str] = set()
            try:
                for principal in to_add:
                    policy = self._change(outcomes, failed, Outcome.ADDED, resource, role, principal, policy)
                    done.add(principal)
                for principal in to_remove:
                    policy = self._change(outcomes, failed, Outcome.REMOVED, resource, role, principal, policy)
                    done.add(principal)
            except EtagConflictError as e:
                conflicts += 1
                if conflicts > self.max_conflicts:
                    failed.update(_fail(outcomes, [p for p in to_add + to_remove if p not in done], e))
                    return _result(resource, role, outcomes)
                if self.console is not None:
                    self.console.print(f"[yellow]Policy of {resource} changed concurrently, re-reading...[/yellow]")
                continue

            return _result(resource, role, outcomes)

    def reconcile_all(self, requests: Iterable[ReconcileRequest]) -> list[ReconcileResult]:
        """Run :meth:`reconcile` for every request, in order, collecting the results."""
        return [
            self.reconcile(request.resource, request.role, request.desired, exclusive=request.exclusive)
            for request in requests
        ]

    def _change(
        self,
        outcomes: dict[str, tuple[Outcome, Optional[str]]],
        failed: set[str],
        action: Outcome,
        resource: str,
        role: str,
        principal: str,
        policy: Policy,
    ) -> Policy:
        """Apply one binding change; conflicts propagate, everything else is recorded."""
        apply = self.store.add_binding if action is Outcome.ADDED else self.store.remove_binding
        try:
            updated = self._retrying(apply)(resource, role, principal, policy)
        except AlreadySatisfied:
            outcomes[principal] = (Outcome.ALREADY_SATISFIED, None)
            return policy
        except (PermissionDeniedError, TransientError) as e:
            failed.update(_fail(outcomes, [principal], e))
            self._report("[red]Failed to change", principal, role, resource)
            return policy

        outcomes[principal] = (action, None)
        verb = "[green]Added" if action is Outcome.ADDED else "[yellow]Removed"
        self._report(verb, principal, role, resource)
        return updated

    def _retrying(self, func: Callable[..., T]) -> Callable[..., T]:
        return retrying(func, **self._retry_options)

    def _report(self, prefix: str, principal: str, role: str, resource: str) -> None:
        if self.console is None:
            return
        legacy = " (legacy wildcard)" if is_legacy_principal(principal) else ""
        self.console.print(f"{prefix}[/] {principal}{legacy} [dim]{role} on {resource}[/dim]")


def _validated(desired: Iterable[str], role: str) -> frozenset[str]:
    target = frozenset(desired)
    if not target:
        raise ValueError(f"Refusing to reconcile {role} to an empty principal set.")
    wildcards = sorted(p for p in target if is_legacy_principal(p))
    if wildcards:
        raise ValueError(
            f"Wildcard principals cannot be bound to {role}; list repositories explicitly: {', '.join(wildcards)}"
        )
    return target


def _fail(
    outcomes: dict[str, tuple[Outcome, Optional[str]]], principals: Iterable[str], error: Exception
) -> list[str]:
    outcome = Outcome.PERMISSION_DENIED if isinstance(error, PermissionDeniedError) else Outcome.FAILED
    principals = list(principals)
    for principal in principals:
        outcomes[principal] = (outcome, str(error))
    return principals


def _result(resource: str, role: str, outcomes: dict[str, tuple[Outcome, Optional[str]]]) -> ReconcileResult:
    result = ReconcileResult(resource=resource, role=role)
    for principal, (outcome, message) in outcomes.items():
        result.record(principal, outcome, message)
    return result


__all__ = ["DEFAULT_MAX_CONFLICTS", "DEFAULT_MAX_TRIES", "Reconciler", "retrying"]
