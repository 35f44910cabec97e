"""Reconciliation and verification outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    """What happened to one principal during a reconcile call."""

    ADDED = "added"
    REMOVED = "removed"
    ALREADY_SATISFIED = "already-satisfied"
    PLANNED_ADD = "planned-add"
    PLANNED_REMOVE = "planned-remove"
    FAILED = "failed"
    PERMISSION_DENIED = "permission-denied"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.FAILED, Outcome.PERMISSION_DENIED)

    @property
    def is_write(self) -> bool:
        return self in (Outcome.ADDED, Outcome.REMOVED)


@dataclass(frozen=True)
class PrincipalOutcome:
    principal: str
    outcome: Outcome
    message: Optional[str] = None


@dataclass
class ReconcileResult:
    """Per-principal outcomes of one ``reconcile(resource, role, desired)`` call."""

    resource: str
    role: str
    outcomes: list[PrincipalOutcome] = field(default_factory=list)

    def record(self, principal: str, outcome: Outcome, message: Optional[str] = None) -> None:
        self.outcomes.append(PrincipalOutcome(principal, outcome, message))

    def with_outcome(self, outcome: Outcome) -> list[str]:
        return [o.principal for o in self.outcomes if o.outcome is outcome]

    @property
    def failures(self) -> list[PrincipalOutcome]:
        return [o for o in self.outcomes if o.outcome.is_failure]

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def write_count(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome.is_write)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class Drift:
    """A (resource, role, principal) triple found out of line with the desired state."""

    resource: str
    role: str
    principal: str


@dataclass
class VerificationReport:
    """Result of the read-only verification pass.

    Attributes
    ----------
    missing : list[Drift]
        Expected pairs not bound. Any entry makes ``converged`` false.
    unexpected : list[Drift]
        Principals still bound to an exclusively managed role without being
        desired, e.g. a legacy wildcard member inside the consistency window.
    unreadable : list[str]
        Resources whose policy could not be read, with the reason.
    """

    missing: list[Drift] = field(default_factory=list)
    unexpected: list[Drift] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.missing and not self.unreadable


__all__ = ["Drift", "Outcome", "PrincipalOutcome", "ReconcileResult", "VerificationReport"]
