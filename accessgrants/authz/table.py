"""The grants table.

Holds ``role -> resource -> "action:possession" -> attribute globs`` plus
each role's ``$extend`` list, tracks whether the table is locked and caches
resolved role hierarchies.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import Any

from accessgrants.authz.models import (
    ERR_LOCK,
    EXTEND_KEY,
    RESERVED_KEYWORDS,
    AccessControlError,
    ErrorKind,
)

logger = logging.getLogger(__name__)


def deep_freeze(value: Any) -> Any:
    """Return a read-only copy: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


class GrantsTable:
    """Canonical rule table shared by the committer and the evaluator.

    Every write goes through ``add_role``/``mutable_role``/``delete_role``,
    which refuse to run once the table is locked and drop cached
    hierarchies.
    """

    def __init__(
        self,
        grants: Mapping[str, Any] | None = None,
        memoize_hierarchy: bool = True,
    ):
        # grants passed here are assumed to be validated already
        self._grants: dict[str, Any] = _thaw(grants) if grants else {}
        self._locked = False
        self._memoize = memoize_hierarchy
        self._closures: dict[str, tuple[str, ...]] = {}

    def __contains__(self, role_name: object) -> bool:
        return role_name in self._grants

    def __len__(self) -> int:
        return len(self._grants)

    def __repr__(self) -> str:
        state = "locked" if self._locked else "mutable"
        return f"<GrantsTable roles={len(self)} {state}>"

    @property
    def grants(self) -> Mapping[str, Any]:
        """Read-only view of the table.

        Fully frozen once locked; before that only the top level is a
        proxy, and role entries change through the write methods below.
        """
        if self._locked:
            return self._grants
        return MappingProxyType(self._grants)

    @property
    def is_locked(self) -> bool:
        return self._locked

    def roles(self) -> list[str]:
        return list(self._grants)

    def has_role(self, role_name: str) -> bool:
        return role_name in self._grants

    def role_entry(self, role_name: str) -> Mapping[str, Any] | None:
        return self._grants.get(role_name)

    # -- Writes ----------------------------------------------------------------

    def ensure_unlocked(self) -> None:
        """Raise LOCKED if the table can no longer be modified."""
        if self._locked:
            logger.warning("Rejected mutation of a locked grants table")
            raise AccessControlError(ERR_LOCK, ErrorKind.LOCKED)

    def add_role(self, role_name: str) -> dict[str, Any]:
        """Return the writable entry for a role, creating it if missing."""
        self.ensure_unlocked()
        self._closures.clear()
        return self._grants.setdefault(role_name, {})

    def mutable_role(self, role_name: str) -> dict[str, Any]:
        """Return the writable entry of an existing role."""
        self.ensure_unlocked()
        if role_name not in self._grants:
            raise AccessControlError(
                f'Role not found: "{role_name}"', ErrorKind.ROLE_NOT_FOUND
            )
        self._closures.clear()
        return self._grants[role_name]

    def delete_role(self, role_name: str) -> None:
        self.ensure_unlocked()
        self._closures.clear()
        del self._grants[role_name]

    # -- Hierarchy cache -------------------------------------------------------

    def cached_closure(self, role_name: str) -> tuple[str, ...] | None:
        return self._closures.get(role_name)

    def store_closure(self, role_name: str, closure: Sequence[str]) -> None:
        if self._memoize:
            self._closures[role_name] = tuple(closure)

    # -- Lifecycle -------------------------------------------------------------

    def lock(self) -> None:
        """Deep-freeze the table. Locking twice is a no-op."""
        if len(self._grants) == 0:
            raise AccessControlError(
                "Cannot lock empty or invalid grants model.",
                ErrorKind.EMPTY_OR_INVALID_GRANTS,
            )
        if self._locked:
            return
        frozen = deep_freeze(self._grants)
        if not isinstance(frozen, MappingProxyType):
            raise AccessControlError(
                f"Could not lock grants: {type(self._grants).__name__}",
                ErrorKind.LOCK_FAILED,
            )
        self._grants = frozen
        self._locked = True
        logger.info("Grants table locked with %d roles", len(self._grants))

    def to_dict(self) -> dict[str, Any]:
        """Deep, mutable copy of the table as plain dicts and lists."""
        return _thaw(self._grants)


def lock(table: GrantsTable) -> None:
    table.lock()


def list_resources(table: GrantsTable) -> list[str]:
    """Unique resource names defined for at least one role."""
    resources: dict[str, None] = {}
    for role in table.grants.values():
        for name in role:
            if name != EXTEND_KEY and name not in RESERVED_KEYWORDS:
                resources[name] = None
    return list(resources)


def list_non_existent_roles(table: GrantsTable, roles: Sequence[str]) -> list[str]:
    """Subset of ``roles`` missing from the table."""
    return [role for role in roles if role not in table]
