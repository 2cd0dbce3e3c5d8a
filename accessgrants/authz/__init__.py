"""Grants model engine.

Role-Based (RBAC) and Attribute-Based (ABAC) access control over a
role -> resource -> action:possession -> attribute globs table.

Usage:
    from accessgrants.authz import GrantsEngine

    engine = GrantsEngine({
        "user": {"video": {"read:any": ["*", "!secret"]}},
        "admin": {"$extend": ["user"], "video": {"delete:any": ["*"]}},
    })
    engine.lock()

    permission = engine.permission(
        {"role": "admin", "resource": "video", "action": "read:own"}
    )
    if permission.granted:
        # Allowed
        pass
"""

from accessgrants.authz.models import (
    AccessControlError,
    AccessInfo,
    Action,
    ErrorKind,
    Permission,
    Possession,
    QueryInfo,
)
from accessgrants.authz.table import GrantsTable
from accessgrants.authz.engine import GrantsEngine, get_grants_engine

__all__ = [
    "AccessControlError",
    "AccessInfo",
    "Action",
    "ErrorKind",
    "Permission",
    "Possession",
    "QueryInfo",
    "GrantsTable",
    "GrantsEngine",
    "get_grants_engine",
]
