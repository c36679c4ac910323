"""
Domain errors raised by the rule service.

Every error carries a stable `kind` (what callers match on) and the HTTP
status the API layer answers with. Low-level storage errors never leave
the store adapter; they arrive here already classified.
"""

from typing import Optional

from fastapi import status


class RuleError(Exception):
    """Base class for all rule lifecycle failures."""

    kind: str = "Unexpected"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


# =============================================================================
# INPUT / VALIDATION
# =============================================================================


class BadRequest(RuleError):
    kind = "BadRequest"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class InvalidPattern(RuleError):
    """Pattern failed syntax checks; `reason` says which one."""

    kind = "InvalidPattern"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid rule pattern: {reason}")


class InvalidLevel(RuleError):
    kind = "InvalidLevel"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid rule level: {reason}")


class MissingComment(RuleError):
    kind = "MissingComment"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Rule comment is required"


class NoCondition(RuleError):
    kind = "NoCondition"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Rule requires at least one condition (trend or threshold)"


# =============================================================================
# LOOKUPS
# =============================================================================


class InvalidProjectID(RuleError):
    kind = "InvalidProjectID"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid project id"


class ProjectNotFound(RuleError):
    kind = "ProjectNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Project not found"


class RuleNotFound(RuleError):
    kind = "RuleNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Rule not found"


class DuplicateProjectName(RuleError):
    kind = "DuplicateProjectName"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Project name already exists"


# =============================================================================
# STORE CONSTRAINTS
# =============================================================================


class DuplicatePattern(RuleError):
    kind = "DuplicatePattern"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Rule pattern already exists"


class RequiredFieldMissing(RuleError):
    kind = "RequiredFieldMissing"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "A required field is missing"


class PrimaryKeyConflict(RuleError):
    kind = "PrimaryKeyConflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Primary key conflict"


class UpdateFailed(RuleError):
    kind = "UpdateFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to update rule"


class Unexpected(RuleError):
    """
    Anything the store or index raised that we have no name for.

    The cause stays attached (`cause` and `__cause__`) for logs; callers
    only ever see the opaque message.
    """

    kind = "Unexpected"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__()
