"""Read-only check that the remote policies hold every expected binding."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from rich.console import Console

from gcloud_wif.policy_store import PolicyStore
from gcloud_wif.reconcile import DEFAULT_MAX_TRIES, retrying
from gcloud_wif.types import Drift, PermissionDeniedError, ReconcileRequest, TransientError, VerificationReport


def verify(
    store: PolicyStore,
    requests: Iterable[ReconcileRequest],
    *,
    max_tries: int = DEFAULT_MAX_TRIES,
    backoff_factor: float = 1.0,
    console: Optional[Console] = None,
) -> VerificationReport:
    """Fetch each resource's policy once and compare it with ``requests``.

    This never writes and never loops until convergence. A resource whose
    policy cannot be read is reported, not raised, so the other resources are
    still checked. Residual drift (for instance from the IAM propagation delay)
    is reported for the operator.

    Returns
    -------
    VerificationReport
        ``missing`` lists expected bindings that are absent, ``unexpected``
        lists undesired members of exclusively managed roles, ``unreadable``
        names resources whose policy could not be read (their expected pairs
        are all listed as missing).
    """
    by_resource: dict[str, list[ReconcileRequest]] = defaultdict(list)
    for request in requests:
        by_resource[request.resource].append(request)

    report = VerificationReport()
    get_policy = retrying(store.get_policy, max_tries=max_tries, backoff_factor=backoff_factor, console=console)

    for resource in sorted(by_resource):
        try:
            policy = get_policy(resource)
        except (PermissionDeniedError, TransientError) as e:
            # Nothing can be confirmed on this resource; every expected pair counts as missing.
            report.unreadable.append(f"{resource}: {e}")
            for request in sorted(by_resource[resource], key=lambda r: r.role):
                report.missing.extend(Drift(resource, request.role, principal) for principal in sorted(request.desired))
            continue
        for request in sorted(by_resource[resource], key=lambda r: r.role):
            current = policy.members(request.role)
            report.missing.extend(
                Drift(resource, request.role, principal) for principal in sorted(request.desired - current)
            )
            if request.exclusive:
                report.unexpected.extend(
                    Drift(resource, request.role, principal) for principal in sorted(current - request.desired)
                )

    return report


__all__ = ["verify"]
