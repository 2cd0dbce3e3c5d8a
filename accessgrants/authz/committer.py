"""Committing access statements to the grants table."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from accessgrants.authz.models import (
    EXTEND_KEY,
    AccessControlError,
    AccessInfo,
    ErrorKind,
)
from accessgrants.authz.table import GrantsTable, list_non_existent_roles
from accessgrants.authz.validation import (
    describe,
    is_filled_string_list,
    normalize_action_possession,
    to_string_list,
    validate_name,
)
from accessgrants.notation import parse_globs

logger = logging.getLogger(__name__)


def normalize_access_info(access: Any, normalize_all: bool = True) -> AccessInfo:
    """Validate and normalize a raw access statement.

    The action is lower-cased and may embed the possession
    (``"Create:Own"``); an explicit ``possession`` wins. With
    ``normalize_all`` the attribute globs are also checked for syntax;
    callers passing attributes that were validated already may skip that.
    """
    if isinstance(access, AccessInfo):
        access = access.model_dump()
    if not isinstance(access, Mapping):
        raise AccessControlError(
            f"Invalid IAccessInfo: {type(access).__name__}", ErrorKind.INVALID_ACCESS_INFO
        )

    roles = to_string_list(access.get("role"))
    if len(roles) == 0 or not is_filled_string_list(roles):
        raise AccessControlError(
            f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
        )
    resources = to_string_list(access.get("resource"))
    if len(resources) == 0 or not is_filled_string_list(resources):
        raise AccessControlError(
            f"Invalid resource(s): {describe(resources)}", ErrorKind.INVALID_RESOURCE_LIST
        )

    denied = bool(access.get("denied", False))
    raw_attributes = access.get("attributes")
    if denied or (isinstance(raw_attributes, (list, tuple)) and len(raw_attributes) == 0):
        attributes: list[str] = []
    elif not raw_attributes:
        attributes = ["*"]
    else:
        attributes = to_string_list(raw_attributes)
        if len(attributes) == 0 or not is_filled_string_list(attributes):
            raise AccessControlError(
                f"Invalid resource attributes: {describe(raw_attributes)}",
                ErrorKind.INVALID_ATTRIBUTES,
            )
        if normalize_all:
            parse_globs(attributes)

    action, possession = normalize_action_possession(
        access.get("action"), access.get("possession")
    )

    return AccessInfo(
        role=roles,
        resource=resources,
        action=action,
        possession=possession,
        attributes=attributes,
        denied=denied,
    )


def commit(table: GrantsTable, access: Any, normalize_all: bool = True) -> AccessInfo:
    """Write an access statement into the table.

    Missing roles and resources are created. The attributes for the exact
    ``action:possession`` key replace whatever was stored there.
    """
    table.ensure_unlocked()
    info = normalize_access_info(access, normalize_all)
    for role_name in info.role:
        validate_name(role_name)
    for resource_name in info.resource:
        validate_name(resource_name)

    key = info.action_key
    for role_name in info.role:
        entry = table.add_role(role_name)
        for resource_name in info.resource:
            entry.setdefault(resource_name, {})[key] = list(info.attributes)

    logger.debug(
        "Committed %s %s on %s for %s: %s",
        "deny" if info.denied else "grant",
        key,
        info.resource,
        info.role,
        info.attributes,
    )
    return info


def pre_create_roles(table: GrantsTable, roles: Any) -> None:
    """Make sure each role exists, even if it has no permissions yet."""
    table.ensure_unlocked()
    if isinstance(roles, str):
        roles = to_string_list(roles)
    if not isinstance(roles, (list, tuple)) or len(roles) == 0:
        raise AccessControlError(
            f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
        )
    for role_name in roles:
        validate_name(role_name)
    for role_name in roles:
        if role_name not in table:
            table.add_role(role_name)


def remove_roles(table: GrantsTable, roles: Any) -> None:
    """Delete roles and drop them from every other role's ``$extend``."""
    table.ensure_unlocked()
    role_list = to_string_list(roles)
    if len(role_list) == 0 or not is_filled_string_list(role_list):
        raise AccessControlError(
            f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
        )
    missing = list_non_existent_roles(table, role_list)
    if missing:
        raise AccessControlError(
            f'Cannot remove non-existent role(s): "{", ".join(missing)}"',
            ErrorKind.ROLE_NOT_FOUND,
        )

    for role_name in role_list:
        table.delete_role(role_name)
    for role_name in table.roles():
        extenders = table.role_entry(role_name).get(EXTEND_KEY)
        if not extenders or not any(r in role_list for r in extenders):
            continue
        entry = table.mutable_role(role_name)
        remaining = [r for r in extenders if r not in role_list]
        if remaining:
            entry[EXTEND_KEY] = remaining
        else:
            del entry[EXTEND_KEY]
    logger.info("Removed roles %s", role_list)


def remove_resources(table: GrantsTable, resources: Any, roles: Any = None) -> None:
    """Delete resources from the given roles, or from every role."""
    table.ensure_unlocked()
    resource_list = to_string_list(resources)
    if len(resource_list) == 0 or not is_filled_string_list(resource_list):
        raise AccessControlError(
            f"Invalid resource(s): {describe(resources)}", ErrorKind.INVALID_RESOURCE_LIST
        )
    for resource_name in resource_list:
        validate_name(resource_name)

    if roles is None:
        role_list = table.roles()
    else:
        role_list = to_string_list(roles)
        if len(role_list) == 0:
            raise AccessControlError(
                f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
            )
        missing = list_non_existent_roles(table, role_list)
        if missing:
            raise AccessControlError(
                f'Role not found: "{", ".join(missing)}"', ErrorKind.ROLE_NOT_FOUND
            )

    for role_name in role_list:
        entry = table.mutable_role(role_name)
        for resource_name in resource_list:
            entry.pop(resource_name, None)
    logger.info("Removed resources %s from %d roles", resource_list, len(role_list))
