"""Grants model validation.

Structural checks for names, resource entries, role entries and whole
grants objects, plus the action/possession normalization shared by
statements and queries. Checks here never mutate anything; loading a raw
grants object registers role extensions in a separate pass once the
whole structure is known to be well formed.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from accessgrants.authz.models import (
    ACTIONS,
    EXTEND_KEY,
    POSSESSIONS,
    RESERVED_KEYWORDS,
    AccessControlError,
    Action,
    ErrorKind,
    Possession,
)
from accessgrants.authz.table import GrantsTable

logger = logging.getLogger(__name__)

_LIST_SEPARATOR = re.compile(r"\s*[;,]\s*")


# -- Generic helpers ----------------------------------------------------------


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def to_string_list(value: Any) -> list[str]:
    """Coerce a string or sequence into a list.

    Strings are split on commas and semicolons. Anything else yields an
    empty list, so callers decide whether that is an error.
    """
    if _is_sequence(value):
        return list(value)
    if isinstance(value, str):
        return _LIST_SEPARATOR.split(value.strip())
    return []


def is_filled_string_list(value: Any) -> bool:
    """Whether ``value`` is a sequence of non-blank strings (possibly empty)."""
    if not _is_sequence(value):
        return False
    return all(isinstance(s, str) and s.strip() != "" for s in value)


def is_empty_list(value: Any) -> bool:
    return _is_sequence(value) and len(value) == 0


def describe(value: Any) -> str:
    """Render a value for an error message."""
    try:
        return json.dumps(value)
    except TypeError:
        return repr(value)


# -- Names ---------------------------------------------------------------------


def validate_name(name: Any, throw_on_invalid: bool = True) -> bool:
    """Check that a role or resource name is usable.

    Raises INVALID_NAME for blank, non-string or reserved names unless
    ``throw_on_invalid`` is False, in which case False is returned.
    """
    if not isinstance(name, str) or name.strip() == "":
        if not throw_on_invalid:
            return False
        raise AccessControlError(
            "Invalid name, expected a valid string.", ErrorKind.INVALID_NAME
        )
    if name in RESERVED_KEYWORDS:
        if not throw_on_invalid:
            return False
        raise AccessControlError(
            f'Cannot use reserved name: "{name}"', ErrorKind.INVALID_NAME
        )
    return True


def has_valid_names(names: Any, throw_on_invalid: bool = True) -> bool:
    """Check every name in a list (or comma separated string)."""
    for name in to_string_list(names):
        if not validate_name(name, throw_on_invalid):
            return False
    return True


# -- Actions and possessions ---------------------------------------------------


def normalize_action_possession(
    action: Any, possession: Any = None
) -> tuple[Action, Possession]:
    """Parse an action (optionally ``action:possession``) and a possession.

    An explicit ``possession`` wins over one embedded in the action.
    Possession defaults to ``any``.
    """
    if not isinstance(action, str):
        raise AccessControlError(
            f"Invalid action: {describe(action)}", ErrorKind.INVALID_ACTION
        )
    parts = action.split(":")
    name = parts[0].strip().lower()
    if name not in ACTIONS:
        raise AccessControlError(f"Invalid action: {parts[0]}", ErrorKind.INVALID_ACTION)

    raw_possession = possession or (parts[1] if len(parts) > 1 else None)
    if not raw_possession:
        return Action(name), Possession.ANY
    if not isinstance(raw_possession, str):
        raise AccessControlError(
            f"Invalid action possession: {describe(raw_possession)}",
            ErrorKind.INVALID_POSSESSION,
        )
    poss = raw_possession.strip().lower()
    if poss not in POSSESSIONS:
        raise AccessControlError(
            f"Invalid action possession: {raw_possession}", ErrorKind.INVALID_POSSESSION
        )
    return Action(name), Possession(poss)


def normalize_action_key(key: str) -> str:
    """Turn a resource entry key into canonical ``action:possession`` form."""
    action, possession = normalize_action_possession(key)
    return f"{action.value}:{possession.value}"


# -- Entries -------------------------------------------------------------------


def validate_resource_entry(entry: Any) -> bool:
    """Validate a resource entry mapping ``action:possession`` to attributes."""
    if not isinstance(entry, Mapping):
        raise AccessControlError(
            "Invalid resource definition.", ErrorKind.INVALID_RESOURCE_DEFINITION
        )
    for key, attributes in entry.items():
        if not isinstance(key, str):
            raise AccessControlError(
                f"Invalid action: {describe(key)}", ErrorKind.INVALID_ACTION
            )
        parts = key.split(":")
        if parts[0] not in ACTIONS:
            raise AccessControlError(f'Invalid action: "{key}"', ErrorKind.INVALID_ACTION)
        if len(parts) > 1 and parts[1] not in POSSESSIONS:
            raise AccessControlError(
                f'Invalid action possession: "{key}"', ErrorKind.INVALID_POSSESSION
            )
        if not is_empty_list(attributes) and not is_filled_string_list(attributes):
            raise AccessControlError(
                f'Invalid resource attributes for action "{key}".',
                ErrorKind.INVALID_ATTRIBUTES,
            )
    return True


def validate_role_entry(grants: Mapping[str, Any], role_name: str) -> bool:
    """Validate one role entry of a raw grants mapping.

    The ``$extend`` value is only checked for shape here; whether the
    extended roles exist and form no cycle is checked when the grants are
    registered.
    """
    role = grants.get(role_name)
    if not isinstance(role, Mapping):
        raise AccessControlError(
            "Invalid role definition.", ErrorKind.INVALID_ROLE_DEFINITION
        )
    for resource_name, value in role.items():
        if validate_name(resource_name, False):
            validate_resource_entry(value)
        elif resource_name == EXTEND_KEY:
            if not is_filled_string_list(value):
                raise AccessControlError(
                    f'Invalid extend value for role "{role_name}": {describe(value)}',
                    ErrorKind.INVALID_EXTEND,
                )
        else:
            raise AccessControlError(
                f'Cannot use reserved name "{resource_name}" for a resource.',
                ErrorKind.RESERVED_RESOURCE_NAME,
            )
    return True


# -- Whole grants objects ------------------------------------------------------


def validate_grants_structure(raw: Any, memoize_hierarchy: bool = True) -> GrantsTable:
    """Validate a raw grants object and build a GrantsTable from it.

    ``raw`` is either a mapping shaped like the grants table or a list of
    access statements. Anything else raises INVALID_GRANTS_OBJECT.
    """
    from accessgrants.authz.committer import commit
    from accessgrants.authz.hierarchy import extend_role

    table = GrantsTable(memoize_hierarchy=memoize_hierarchy)

    if isinstance(raw, Mapping):
        for role_name in raw:
            validate_name(role_name)
            validate_role_entry(raw, role_name)

        for role_name, role in raw.items():
            entry = table.add_role(role_name)
            for resource_name, value in role.items():
                if resource_name == EXTEND_KEY:
                    continue
                entry[resource_name] = {
                    normalize_action_key(key): list(attributes)
                    for key, attributes in value.items()
                }
        for role_name, role in raw.items():
            extenders = role.get(EXTEND_KEY)
            if extenders:
                extend_role(table, [role_name], list(extenders))

    elif _is_sequence(raw):
        for statement in raw:
            commit(table, statement, normalize_all=True)

    else:
        raise AccessControlError(
            "Invalid grants object. Expected an array or object.",
            ErrorKind.INVALID_GRANTS_OBJECT,
        )

    logger.info("Loaded grants model with %d roles", len(table))
    return table
