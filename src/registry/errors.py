"""Error conventions for the token registry.

Every fatal condition is raised as a RegistryError subclass carrying a
machine-readable code and category. Mutations abort with no partial write
when one is raised. The query surface converts them to the standardized
response dict via to_dict() or validation_error().

Usage:
    from src.registry.errors import CapacityExceededError, validation_error

    raise CapacityExceededError("genesis", cap=10)

    # In query handlers:
    return validation_error(
        "limit must be >= 0",
        code=ErrorCode.INVALID_ARGUMENT,
        param="limit",
    )
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error classification.

    - VALIDATION: Caller provided bad input
    - PERMISSION: Caller not authorized
    - RESOURCE: Not found, already exists, capacity
    - SYSTEM: Internal defects
    """

    VALIDATION = "validation"  # Invalid input, bad arguments
    PERMISSION = "permission"  # Not authorized, wrong owner
    RESOURCE = "resource"  # Not found, already exists, cap reached
    SYSTEM = "system"  # Internal error, unexpected


class ErrorCode(str, Enum):
    """Specific error codes for programmatic handling."""

    # Validation errors
    MISSING_ARGUMENT = "missing_argument"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_ACCOUNT_ID = "invalid_account_id"
    ROYALTY_CAP_EXCEEDED = "royalty_cap_exceeded"

    # Permission errors
    NOT_OWNER = "not_owner"
    NOT_AUTHORIZED = "not_authorized"

    # Resource errors
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    TYPE_LOCKED = "type_locked"

    # System errors
    INTERNAL_ERROR = "internal_error"
    INVARIANT_VIOLATION = "invariant_violation"


@dataclass
class ErrorResponse:
    """Standardized error response.

    All error responses include:
    - success: Always False
    - error: Human-readable message
    - code: Machine-readable error code
    - category: Error category (validation, permission, etc.)
    - retriable: Whether the operation should be retried
    - details: Optional additional context
    """

    success: bool = False
    error: str = ""
    code: str = ""
    category: str = ""
    retriable: bool = False
    details: dict[str, object] | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        result: dict[str, object] = {
            "success": self.success,
            "error": self.error,
            "code": self.code,
            "category": self.category,
            "retriable": self.retriable,
        }
        if self.details:
            result["details"] = self.details
        return result


class RegistryError(Exception):
    """Base class for every error raised by the registry.

    None of these are retriable: the caller has to change the request or
    an administrator has to change registry state first.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(self, message: str, **details: object) -> None:
        self.message = message
        self.details = dict(details)
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        return ErrorResponse(
            error=self.message,
            code=self.code.value,
            category=self.category.value,
            retriable=False,
            details=self.details or None,
        ).to_dict()


class InvalidArgumentError(RegistryError):
    """Raised when a request argument is malformed or out of range."""

    code = ErrorCode.INVALID_ARGUMENT
    category = ErrorCategory.VALIDATION


class InvalidAccountIdError(InvalidArgumentError):
    """Raised when a string is not a valid account identifier."""

    code = ErrorCode.INVALID_ACCOUNT_ID

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(f"Invalid account id: '{account_id}'", account_id=account_id)


class RoyaltyCapExceededError(RegistryError):
    """Raised when a royalty aggregate would exceed its ceiling."""

    code = ErrorCode.ROYALTY_CAP_EXCEEDED
    category = ErrorCategory.VALIDATION

    def __init__(self, total: int, cap: int, is_operator: bool) -> None:
        self.total = total
        self.cap = cap
        self.is_operator = is_operator
        who = "Operator" if is_operator else "Minter"
        super().__init__(
            f"{who} royalty {total} exceeds cap of {cap} basis points",
            total=total,
            cap=cap,
            is_operator=is_operator,
        )


class NotOwnerError(RegistryError):
    """Raised when a transfer names a sender that does not own the token."""

    code = ErrorCode.NOT_OWNER
    category = ErrorCategory.PERMISSION

    def __init__(self, token_id: str, claimed_owner: str) -> None:
        self.token_id = token_id
        self.claimed_owner = claimed_owner
        super().__init__(
            f"'{claimed_owner}' does not own token '{token_id}'",
            token_id=token_id,
            claimed_owner=claimed_owner,
        )


class NotAuthorizedError(RegistryError):
    """Raised when a non-owner calls an administrative operation."""

    code = ErrorCode.NOT_AUTHORIZED
    category = ErrorCategory.PERMISSION

    def __init__(self, caller_id: str, operation: str) -> None:
        self.caller_id = caller_id
        self.operation = operation
        super().__init__(
            f"'{caller_id}' is not allowed to call {operation}",
            caller_id=caller_id,
            operation=operation,
        )


class TokenNotFoundError(RegistryError):
    """Raised by operations that require an existing token."""

    code = ErrorCode.NOT_FOUND
    category = ErrorCategory.RESOURCE

    def __init__(self, token_id: str) -> None:
        self.token_id = token_id
        super().__init__(f"Token '{token_id}' not found", token_id=token_id)


class DuplicateTokenError(RegistryError):
    """Raised when minting a token id that is already registered."""

    code = ErrorCode.ALREADY_EXISTS
    category = ErrorCategory.RESOURCE

    def __init__(self, token_id: str) -> None:
        self.token_id = token_id
        super().__init__(f"Token '{token_id}' already exists", token_id=token_id)


class CapacityExceededError(RegistryError):
    """Raised when a type has reached its supply cap (or was never declared)."""

    code = ErrorCode.CAPACITY_EXCEEDED
    category = ErrorCategory.RESOURCE

    def __init__(self, token_type: str, cap: int) -> None:
        self.token_type = token_type
        self.cap = cap
        super().__init__(
            f"Type '{token_type}' has reached its supply cap of {cap}",
            token_type=token_type,
            cap=cap,
        )


class LockedTypeError(RegistryError):
    """Raised when minting a token of a locked type."""

    code = ErrorCode.TYPE_LOCKED
    category = ErrorCategory.RESOURCE

    def __init__(self, token_type: str) -> None:
        self.token_type = token_type
        super().__init__(f"Type '{token_type}' is locked", token_type=token_type)


class InvariantViolationError(RegistryError):
    """Internal defect: the canonical store and an index disagree."""

    code = ErrorCode.INVARIANT_VIOLATION
    category = ErrorCategory.SYSTEM


# Factory for responses built outside an exception (query-layer validation)


def validation_error(
    message: str,
    code: ErrorCode = ErrorCode.INVALID_ARGUMENT,
    **details: object,
) -> dict[str, object]:
    """Create a validation error response.

    Use when the caller provided invalid input.
    """
    return ErrorResponse(
        error=message,
        code=code.value,
        category=ErrorCategory.VALIDATION.value,
        retriable=False,
        details=dict(details) if details else None,
    ).to_dict()
