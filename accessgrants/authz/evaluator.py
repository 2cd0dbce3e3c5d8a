"""Permission query evaluation.

Resolves the queried roles (and everything they inherit), looks up each
role's attributes for the resource and action, and unions them: any one
role having access is enough.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from accessgrants.authz.hierarchy import flatten_roles
from accessgrants.authz.models import (
    AccessControlError,
    ErrorKind,
    Possession,
    QueryInfo,
)
from accessgrants.authz.table import GrantsTable
from accessgrants.authz.validation import (
    describe,
    is_filled_string_list,
    normalize_action_possession,
    to_string_list,
    validate_name,
)
from accessgrants.notation import union

logger = logging.getLogger(__name__)


def normalize_query_info(query: Any) -> QueryInfo:
    """Validate and normalize a raw permission query."""
    if isinstance(query, QueryInfo):
        query = query.model_dump()
    if not isinstance(query, Mapping):
        raise AccessControlError(
            f"Invalid IQueryInfo: {type(query).__name__}", ErrorKind.INVALID_QUERY_INFO
        )

    roles = to_string_list(query.get("role"))
    if len(roles) == 0 or not is_filled_string_list(roles):
        raise AccessControlError(
            f"Invalid role(s): {describe(roles)}", ErrorKind.INVALID_ROLE_LIST
        )

    resource = query.get("resource")
    if not isinstance(resource, str) or not validate_name(resource.strip(), False):
        raise AccessControlError(
            f'Invalid resource: "{resource}"', ErrorKind.INVALID_RESOURCE_LIST
        )

    action, possession = normalize_action_possession(
        query.get("action"), query.get("possession")
    )
    return QueryInfo(
        role=roles,
        resource=resource.strip(),
        action=action,
        possession=possession,
    )


def _role_attributes(role: Mapping[str, Any], query: QueryInfo) -> list[str]:
    resource = role.get(query.resource)
    if resource is None:
        return []
    attributes = resource.get(query.action_key)
    # an "any" grant also answers an "own" query
    if attributes is None and query.possession == Possession.OWN:
        attributes = resource.get(f"{query.action.value}:{Possession.ANY.value}")
    return list(attributes or ())


def evaluate(table: GrantsTable, query: Any) -> list[str]:
    """Union of the attributes the queried roles may access.

    An empty list means access is not granted.
    """
    info = normalize_query_info(query)
    roles = flatten_roles(table, info.role)

    attributes_per_role = [_role_attributes(table.role_entry(r), info) for r in roles]
    attributes = attributes_per_role[0]
    for other in attributes_per_role[1:]:
        attributes = union(attributes, other)

    logger.debug(
        "Evaluated %s on %s for %s (resolved %s): %s",
        info.action_key,
        info.resource,
        info.role,
        roles,
        attributes,
    )
    return attributes


def is_granted(attributes: Sequence[str]) -> bool:
    """Access is granted when at least one attribute is permitted."""
    return len(attributes) > 0
