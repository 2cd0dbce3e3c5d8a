"""Role hierarchy resolution.

Roles inherit from the roles listed under ``$extend``. The inheritance
graph must stay acyclic: a role may not extend itself, nor a role that
already (transitively) extends it. Diamonds are fine.
"""

from __future__ import annotations

import logging
from typing import Any

from accessgrants.authz.models import EXTEND_KEY, AccessControlError, ErrorKind
from accessgrants.authz.table import GrantsTable, list_non_existent_roles
from accessgrants.authz.validation import describe, is_empty_list, to_string_list, validate_name

logger = logging.getLogger(__name__)


def _role_not_found(role_name: str) -> AccessControlError:
    return AccessControlError(f'Role not found: "{role_name}"', ErrorKind.ROLE_NOT_FOUND)


def _self_extension(role_name: str) -> AccessControlError:
    return AccessControlError(
        f'Cannot extend role "{role_name}" by itself.', ErrorKind.SELF_EXTENSION
    )


def _cross_inheritance(extender: str, role_name: str) -> AccessControlError:
    return AccessControlError(
        f'Cross inheritance is not allowed. Role "{extender}" already extends "{role_name}".',
        ErrorKind.CROSS_INHERITANCE,
    )


def _closure(table: GrantsTable, role_name: str, chain: tuple[str, ...]) -> list[str]:
    """Depth-first closure of ``role_name``.

    ``chain`` holds the roles currently being resolved above this one;
    meeting any of them again means the graph has a cycle.
    """
    role = table.role_entry(role_name)
    if role is None:
        raise _role_not_found(role_name)

    cached = table.cached_closure(role_name)
    if cached is not None:
        for ancestor in chain:
            if ancestor in cached:
                raise _cross_inheritance(role_name, ancestor)
        return list(cached)

    closure = [role_name]
    chain = chain + (role_name,)
    for extender in role.get(EXTEND_KEY) or ():
        if extender not in table:
            raise _role_not_found(extender)
        if extender == role_name:
            raise _self_extension(role_name)
        if extender in chain:
            raise _cross_inheritance(extender, role_name)
        for inherited in _closure(table, extender, chain):
            if inherited not in closure:
                closure.append(inherited)

    table.store_closure(role_name, closure)
    return closure


def resolve_hierarchy(table: GrantsTable, role_name: str) -> list[str]:
    """Flat, ordered list of ``role_name`` followed by every role it inherits.

    Order is depth-first in ``$extend`` order, without duplicates.
    """
    return _closure(table, role_name, ())


def flatten_roles(table: GrantsTable, roles: Any) -> list[str]:
    """Given roles plus everything they inherit, without duplicates."""
    role_list = to_string_list(roles or [])
    if len(role_list) == 0:
        raise AccessControlError(
            f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
        )
    flat: list[str] = []
    for role_name in role_list:
        if role_name not in flat:
            flat.append(role_name)
    for role_name in role_list:
        for inherited in resolve_hierarchy(table, role_name):
            if inherited not in flat:
                flat.append(inherited)
    return flat


def detect_cross_extension(
    table: GrantsTable, role_name: str, candidate_extenders: Any
) -> str | None:
    """Return the first candidate that already inherits ``role_name``, if any."""
    for extender in to_string_list(candidate_extenders):
        if extender == role_name:
            break
        if role_name in resolve_hierarchy(table, extender):
            return extender
    return None


def extend_role(table: GrantsTable, roles: Any, extender_roles: Any) -> None:
    """Make each of ``roles`` inherit the permissions of ``extender_roles``.

    Both the roles and the extenders must already exist. Everything is
    checked before the first ``$extend`` list is written.
    """
    table.ensure_unlocked()

    role_list = to_string_list(roles)
    if len(role_list) == 0:
        raise AccessControlError(
            f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
        )
    if is_empty_list(extender_roles):
        return

    extenders = to_string_list(extender_roles)
    if len(extenders) == 0:
        raise AccessControlError(
            f"Cannot inherit invalid role(s): {describe(extender_roles)}",
            ErrorKind.INVALID_EXTEND,
        )
    missing = list_non_existent_roles(table, extenders)
    if missing:
        raise AccessControlError(
            f'Cannot inherit non-existent role(s): "{", ".join(missing)}"',
            ErrorKind.ROLE_NOT_FOUND,
        )

    for role_name in role_list:
        if role_name not in table:
            raise _role_not_found(role_name)
        if role_name in extenders:
            raise _self_extension(role_name)
        cross = detect_cross_extension(table, role_name, extenders)
        if cross:
            raise _cross_inheritance(cross, role_name)
        validate_name(role_name)

    for role_name in role_list:
        entry = table.mutable_role(role_name)
        merged = list(entry.get(EXTEND_KEY) or [])
        for extender in extenders:
            if extender not in merged:
                merged.append(extender)
        entry[EXTEND_KEY] = merged
        logger.debug("Role %s now extends %s", role_name, merged)
