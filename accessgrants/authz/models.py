"""Grants model data types.

Defines actions, possessions, normalized access statements and queries,
and the permission result. Re-exports the engine error type.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from accessgrants.errors import AccessControlError, ErrorKind
from accessgrants.notation import filter_all


# Roles and resources cannot use these names.
RESERVED_KEYWORDS = ("*", "!", "$", "$extend")

# Key under which a role entry stores the roles it inherits from.
EXTEND_KEY = "$extend"

ERR_LOCK = "Cannot alter the underlying grants model. AccessControl instance is locked."


class Action(str, Enum):
    """CRUD action performed on a resource."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Possession(str, Enum):
    """Whether the action targets resources the actor owns or any instance."""

    OWN = "own"
    ANY = "any"


ACTIONS = tuple(a.value for a in Action)
POSSESSIONS = tuple(p.value for p in Possession)


class AccessInfo(BaseModel):
    """A normalized grant or deny statement ready to be committed."""

    role: list[str] = Field(description="Roles the statement applies to")
    resource: list[str] = Field(description="Resources the statement applies to")
    action: Action = Field(description="Action being granted or denied")
    possession: Possession = Field(
        default=Possession.ANY,
        description="Possession qualifier of the action"
    )
    attributes: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Permitted attribute globs (empty when denied)"
    )
    denied: bool = Field(default=False, description="Whether this is a deny statement")

    @property
    def action_key(self) -> str:
        """Composite ``action:possession`` key used in resource entries."""
        return f"{self.action.value}:{self.possession.value}"


class QueryInfo(BaseModel):
    """A normalized permission query."""

    role: list[str] = Field(description="Roles being checked")
    resource: str = Field(description="Target resource")
    action: Action = Field(description="Requested action")
    possession: Possession = Field(default=Possession.ANY, description="Possession qualifier")

    @property
    def action_key(self) -> str:
        return f"{self.action.value}:{self.possession.value}"


class Permission(BaseModel):
    """Result of a permission query.

    When several roles are queried, attributes are unioned across them,
    so the permission means "at least one of these roles" may act.
    """

    roles: list[str] = Field(description="Roles the permission was queried for")
    resource: str = Field(description="Resource the permission was queried for")
    action: Action
    possession: Possession
    attributes: list[str] = Field(
        default_factory=list,
        description="Permitted attribute globs; empty when not granted"
    )

    @property
    def granted(self) -> bool:
        """At least one attribute of the resource is permitted."""
        return len(self.attributes) > 0

    def filter(self, data: dict[str, Any] | list[dict[str, Any]]) -> Any:
        """Return a copy of ``data`` holding only the permitted attributes."""
        return filter_all(data, self.attributes)
