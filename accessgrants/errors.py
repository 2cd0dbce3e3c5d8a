"""Error type shared by the grants model and the attribute matcher."""

from enum import Enum


class ErrorKind(str, Enum):
    """Tags carried by AccessControlError."""

    INVALID_NAME = "invalid_name"
    RESERVED_RESOURCE_NAME = "reserved_resource_name"
    INVALID_ACTION = "invalid_action"
    INVALID_POSSESSION = "invalid_possession"
    INVALID_ATTRIBUTES = "invalid_attributes"
    INVALID_EXTEND = "invalid_extend"
    INVALID_GRANTS_OBJECT = "invalid_grants_object"
    INVALID_ROLE_LIST = "invalid_role_list"
    INVALID_RESOURCE_LIST = "invalid_resource_list"
    INVALID_ACCESS_INFO = "invalid_access_info"
    INVALID_QUERY_INFO = "invalid_query_info"
    INVALID_RESOURCE_DEFINITION = "invalid_resource_definition"
    INVALID_ROLE_DEFINITION = "invalid_role_definition"
    ROLE_NOT_FOUND = "role_not_found"
    SELF_EXTENSION = "self_extension"
    CROSS_INHERITANCE = "cross_inheritance"
    LOCKED = "locked"
    EMPTY_OR_INVALID_GRANTS = "empty_or_invalid_grants"
    LOCK_FAILED = "lock_failed"


class AccessControlError(Exception):
    """Raised for every grants model failure.

    Callers discriminate on ``kind`` rather than on exception subclasses.
    """

    def __init__(self, message: str, kind: ErrorKind):
        self.message = message
        self.kind = kind
        super().__init__(message)

    def __repr__(self) -> str:
        return f"AccessControlError({self.message!r}, kind={self.kind.value!r})"
