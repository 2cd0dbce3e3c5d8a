"""accessgrants: in-process RBAC + ABAC grants model engine."""

from accessgrants.authz import (
    AccessControlError,
    Action,
    ErrorKind,
    GrantsEngine,
    GrantsTable,
    Permission,
    Possession,
)

__version__ = "0.1.0"

__all__ = [
    "AccessControlError",
    "Action",
    "ErrorKind",
    "GrantsEngine",
    "GrantsTable",
    "Permission",
    "Possession",
]
