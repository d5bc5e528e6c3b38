"""Error hierarchy for vkv.

Every failure surfaced by vkv belongs to exactly one kind:

- ``bad-option-combo``: mutually exclusive or incomplete options
- ``bad-input``: unparseable payloads, invalid paths or configuration
- ``bad-pattern``: invalid regular expressions
- ``not-found``: the store has nothing at the requested path
- ``forbidden``: the token lacks permission
- ``conflict``: the target already exists and overwriting was not allowed
- ``transport``: the store could not be reached
- ``protocol``: the store answered with something unexpected
- ``internal``: everything else, including template failures
"""

from typing import Any, Dict, Optional


class VkvError(Exception):
    """Base exception for all vkv errors."""

    kind: str = "internal"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize vkv error.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code (e.g., "NOT_FOUND")
            details: Additional error details (paths, operation names)
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_type": self.__class__.__name__,
            "error_kind": self.kind,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class BadOptionComboError(VkvError):
    """Mutually exclusive options were combined or a required option is missing."""

    kind = "bad-option-combo"

    def __init__(
        self,
        message: str,
        error_code: str = "BAD_OPTION_COMBO",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class BadInputError(VkvError):
    """Input could not be parsed or does not describe a valid secret tree."""

    kind = "bad-input"

    def __init__(
        self,
        message: str,
        error_code: str = "BAD_INPUT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class ConfigurationError(BadInputError):
    """Connection settings are missing or invalid.

    Raised before any call to the store is made, e.g. when neither an address
    nor a token could be resolved from the environment.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIGURATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class BadPatternError(VkvError):
    """A regular expression failed to compile."""

    kind = "bad-pattern"

    def __init__(
        self,
        message: str,
        error_code: str = "BAD_PATTERN",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class NotFoundError(VkvError):
    """Nothing exists at the requested path."""

    kind = "not-found"

    def __init__(
        self,
        message: str,
        error_code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class ForbiddenError(VkvError):
    """The token is not allowed to perform the operation."""

    kind = "forbidden"

    def __init__(
        self,
        message: str,
        error_code: str = "FORBIDDEN",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class ConflictError(VkvError):
    """The target already exists and overwriting was not requested."""

    kind = "conflict"

    def __init__(
        self,
        message: str,
        error_code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class TransportError(VkvError):
    """The store could not be reached (network, TLS, timeout, sealed)."""

    kind = "transport"

    def __init__(
        self,
        message: str,
        error_code: str = "TRANSPORT_FAILED",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class ProtocolError(VkvError):
    """The store returned an unexpected or malformed response."""

    kind = "protocol"

    def __init__(
        self,
        message: str,
        error_code: str = "PROTOCOL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class InternalError(VkvError):
    """Unexpected failure inside vkv, including template rendering errors."""

    kind = "internal"

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


# Errors the walker may skip over when skip-errors is enabled
SKIPPABLE_ERRORS = (ForbiddenError, NotFoundError)


def get_error_kind(error: Exception) -> str:
    """Get the taxonomy kind of an exception.

    Args:
        error: Exception to classify

    Returns:
        Kind string, "internal" for foreign exceptions
    """
    if isinstance(error, VkvError):
        return error.kind
    return "internal"


def wrap_exception(
    error: Exception,
    error_class: type = InternalError,
    message: Optional[str] = None,
) -> VkvError:
    """Wrap an exception in a vkv error.

    Args:
        error: Original exception
        error_class: vkv error class to wrap with
        message: Optional custom message

    Returns:
        Wrapped vkv error
    """
    if isinstance(error, VkvError):
        return error

    return error_class(
        message=message or str(error),
        details={
            "original_error": type(error).__name__,
            "original_message": str(error),
        },
    )
