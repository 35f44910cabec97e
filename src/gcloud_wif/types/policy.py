"""Structured IAM policy snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping


@dataclass(frozen=True)
class Policy:
    """An IAM policy as read from the control plane.

    Attributes
    ----------
    resource : str
        Resource the policy belongs to (``projects/{id}`` or
        ``projects/{id}/serviceAccounts/{email}``).
    bindings : Mapping[str, frozenset[str]]
        Unconditional bindings, one principal set per role.
    etag : str
        Optimistic-concurrency token returned by the last read or write.
    version : int
        IAM policy schema version.
    conditional_bindings : tuple[dict, ...]
        Bindings carrying a ``condition``. Written back verbatim, never reconciled.
    """

    resource: str
    bindings: Mapping[str, frozenset[str]] = field(default_factory=dict)
    etag: str = ""
    version: int = 1
    conditional_bindings: tuple[dict, ...] = ()

    # Mapping and dict fields are not hashable; compare policies with ==.
    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        cleaned = {role: frozenset(members) for role, members in self.bindings.items() if members}
        object.__setattr__(self, "bindings", MappingProxyType(cleaned))

    def members(self, role: str) -> frozenset[str]:
        """Principals bound to ``role``; empty when the role has no binding."""
        return self.bindings.get(role, frozenset())

    def roles(self) -> list[str]:
        return sorted(self.bindings)

    def with_member(self, role: str, principal: str) -> "Policy":
        return self._with_members(role, self.members(role) | {principal})

    def without_member(self, role: str, principal: str) -> "Policy":
        return self._with_members(role, self.members(role) - {principal})

    def _with_members(self, role: str, members: Iterable[str]) -> "Policy":
        bindings = dict(self.bindings)
        bindings[role] = frozenset(members)
        return replace(self, bindings=bindings)

    @classmethod
    def from_api(cls, resource: str, payload: dict) -> "Policy":
        """Parse a ``getIamPolicy``/``setIamPolicy`` response body.

        Repeated unconditional entries for one role are merged, duplicate
        members collapse.
        """
        merged: dict[str, set[str]] = {}
        conditional: list[dict] = []
        for binding in payload.get("bindings", []):
            if binding.get("condition"):
                conditional.append(binding)
                continue
            merged.setdefault(binding["role"], set()).update(binding.get("members", []))

        return cls(
            resource=resource,
            bindings={role: frozenset(members) for role, members in merged.items()},
            etag=payload.get("etag", ""),
            version=int(payload.get("version", 1)),
            conditional_bindings=tuple(conditional),
        )

    def to_api(self) -> dict:
        """Serialize into a ``setIamPolicy`` ``policy`` body carrying the read etag."""
        bindings = [
            {"role": role, "members": sorted(self.bindings[role])} for role in self.roles()
        ]
        bindings.extend(self.conditional_bindings)

        body: dict = {"bindings": bindings}
        if self.etag:
            body["etag"] = self.etag
        # Conditions require schema version 3.
        body["version"] = 3 if self.conditional_bindings else self.version
        return body


__all__ = ["Policy"]
