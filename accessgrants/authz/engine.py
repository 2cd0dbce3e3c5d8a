"""Grants engine.

Owns a grants table and exposes the build-time and query-time operations
on it.
"""

import logging
from collections.abc import Mapping
from typing import Any

from accessgrants.authz import committer, hierarchy
from accessgrants.authz.evaluator import evaluate, normalize_query_info
from accessgrants.authz.models import AccessInfo, Permission
from accessgrants.authz.table import GrantsTable, list_resources
from accessgrants.authz.validation import to_string_list, validate_grants_structure
from accessgrants.config import GrantsSettings, get_settings
from accessgrants.notation import filter_all

logger = logging.getLogger(__name__)


class GrantsEngine:
    """Role and attribute based access control over a grants table.

    Build phase: load a grants object and/or commit grant and deny
    statements, extend roles. Optionally lock the table afterwards; a
    locked engine is safe to query from any number of threads.

    Usage:
        engine = GrantsEngine()
        engine.grant({"role": "user", "resource": "video", "action": "read:any"})
        engine.grant({"role": "admin", "resource": "video", "action": "delete:any"})
        engine.extend_role("admin", "user")

        permission = engine.permission(
            {"role": "admin", "resource": "video", "action": "read:own"}
        )
        if permission.granted:
            visible = permission.filter(video)
    """

    def __init__(
        self,
        grants: Mapping[str, Any] | list[Any] | None = None,
        settings: GrantsSettings | None = None,
    ):
        """Initialize the engine, optionally loading a grants object."""
        self.settings = settings or get_settings()
        self._table = GrantsTable(memoize_hierarchy=self.settings.memoize_hierarchy)
        if grants is not None:
            self.set_grants(grants)

        logger.info("GrantsEngine initialized with %d roles", len(self._table))

    @property
    def table(self) -> GrantsTable:
        return self._table

    @property
    def is_locked(self) -> bool:
        return self._table.is_locked

    # -- Build time ------------------------------------------------------------

    def set_grants(self, grants: Mapping[str, Any] | list[Any]) -> None:
        """Replace the table with a validated grants object."""
        self._table.ensure_unlocked()
        self._table = validate_grants_structure(
            grants, memoize_hierarchy=self.settings.memoize_hierarchy
        )
        if self.settings.lock_on_load and len(self._table) > 0:
            self.lock()

    def get_grants(self) -> dict[str, Any]:
        """Plain, deep copy of the grants table."""
        return self._table.to_dict()

    def reset(self) -> None:
        """Drop every role."""
        self._table.ensure_unlocked()
        self._table = GrantsTable(memoize_hierarchy=self.settings.memoize_hierarchy)
        logger.info("Grants table reset")

    def commit(self, access: Mapping[str, Any] | AccessInfo) -> AccessInfo:
        """Commit a fully described access statement."""
        return committer.commit(self._table, access, normalize_all=True)

    def grant(self, access: Mapping[str, Any] | AccessInfo) -> AccessInfo:
        """Grant access. Attributes default to all (``*``)."""
        if isinstance(access, AccessInfo):
            access = access.model_dump()
        return self.commit({**access, "denied": False})

    def deny(self, access: Mapping[str, Any] | AccessInfo) -> AccessInfo:
        """Deny access by storing an empty attribute list."""
        if isinstance(access, AccessInfo):
            access = access.model_dump()
        return self.commit({**access, "denied": True, "attributes": []})

    def pre_create_roles(self, roles: str | list[str]) -> None:
        committer.pre_create_roles(self._table, roles)

    def extend_role(self, roles: str | list[str], extender_roles: str | list[str]) -> None:
        """Make the role(s) inherit every permission of the extender role(s)."""
        hierarchy.extend_role(self._table, roles, extender_roles)

    def remove_roles(self, roles: str | list[str]) -> None:
        committer.remove_roles(self._table, roles)

    def remove_resources(
        self, resources: str | list[str], roles: str | list[str] | None = None
    ) -> None:
        committer.remove_resources(self._table, resources, roles)

    def lock(self) -> None:
        """Freeze the grants table for good."""
        self._table.lock()

    # -- Introspection ---------------------------------------------------------

    def get_roles(self) -> list[str]:
        return self._table.roles()

    def get_resources(self) -> list[str]:
        return list_resources(self._table)

    def has_role(self, roles: str | list[str]) -> bool:
        """Whether every given role exists."""
        role_list = to_string_list(roles)
        return len(role_list) > 0 and all(r in self._table for r in role_list)

    def has_resource(self, resources: str | list[str]) -> bool:
        """Whether every given resource is defined for at least one role."""
        resource_list = to_string_list(resources)
        known = set(self.get_resources())
        return len(resource_list) > 0 and all(r in known for r in resource_list)

    def get_inherited_roles_of(self, role: str) -> list[str]:
        """Every role ``role`` inherits from, directly or not."""
        return hierarchy.resolve_hierarchy(self._table, role)[1:]

    # -- Query time ------------------------------------------------------------

    def permission(self, query: Mapping[str, Any]) -> Permission:
        """Evaluate a permission query.

        Args:
            query: role(s), resource, action and optional possession

        Returns:
            Permission with the unioned attributes of all queried roles
        """
        info = normalize_query_info(query)
        attributes = evaluate(self._table, info)
        permission = Permission(
            roles=info.role,
            resource=info.resource,
            action=info.action,
            possession=info.possession,
            attributes=attributes,
        )

        level = logging.INFO if self.settings.log_decisions else logging.DEBUG
        logger.log(
            level,
            "Access %s: roles=%s resource=%s action=%s",
            "GRANTED" if permission.granted else "DENIED",
            info.role,
            info.resource,
            info.action_key,
        )
        return permission

    @staticmethod
    def filter(data: Any, attributes: list[str]) -> Any:
        """Filter an object or list of objects by attribute globs."""
        return filter_all(data, attributes)


# Singleton instance
_grants_engine: GrantsEngine | None = None


def get_grants_engine() -> GrantsEngine:
    """Get the grants engine singleton."""
    global _grants_engine
    if _grants_engine is None:
        _grants_engine = GrantsEngine()
    return _grants_engine
