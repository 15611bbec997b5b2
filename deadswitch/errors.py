"""
Deadswitch Error Handling

All error codes and exception classes.
"""

from enum import IntEnum
from typing import Optional, Any


class ErrorCode(IntEnum):
    """Client error codes."""

    # 1xxx - General errors
    UNKNOWN_ERROR = 1000
    INVALID_PARAMETER = 1001

    # 2xxx - Address derivation errors
    INVALID_KEY_LENGTH = 2001
    ADDRESS_DERIVATION_FAILED = 2002

    # 3xxx - Identity / access errors
    NOT_AUTHENTICATED = 3001
    ACCESS_DENIED = 3002

    # 4xxx - Protocol (will) errors
    NO_PROTOCOL_REGISTERED = 4001
    INVALID_WILL_PAYLOAD = 4002

    # 5xxx - Remote collaborator errors
    REMOTE_CALL_FAILED = 5001


class DeadSwitchError(Exception):
    """Base exception for all deadswitch errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for presentation layers."""
        result = {
            "code": self.code.value,
            "name": self.code.name,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result


# ==============================================================================
# General Errors (1xxx)
# ==============================================================================

class InvalidParameterError(DeadSwitchError):
    def __init__(self, param: str, message: str = ""):
        msg = f"Invalid parameter: {param}"
        if message:
            msg += f" - {message}"
        super().__init__(ErrorCode.INVALID_PARAMETER, msg, {"parameter": param})


# ==============================================================================
# Address Errors (2xxx)
# ==============================================================================

class AddressDerivationError(DeadSwitchError):
    def __init__(
        self,
        cause: str,
        details: Any = None,
        code: ErrorCode = ErrorCode.ADDRESS_DERIVATION_FAILED
    ):
        self.cause = cause
        super().__init__(code, f"Failed to convert public key to Bitcoin address: {cause}", details)


class InvalidKeyLength(AddressDerivationError):
    def __init__(self, length: int):
        self.length = length
        super().__init__(
            f"Invalid public key length: {length} bytes. "
            f"Expected 33 (compressed) or 65 (uncompressed).",
            {"length": length},
            code=ErrorCode.INVALID_KEY_LENGTH,
        )


# ==============================================================================
# Access Errors (3xxx)
# ==============================================================================

class NotAuthenticated(DeadSwitchError):
    def __init__(self, operation: str = ""):
        msg = "Not authenticated"
        if operation:
            msg += f": {operation} requires a verified identity"
        super().__init__(ErrorCode.NOT_AUTHENTICATED, msg, {"operation": operation} if operation else None)


class AccessDenied(DeadSwitchError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(ErrorCode.ACCESS_DENIED, f"Access denied: {reason}", {"reason": reason})


# ==============================================================================
# Protocol Errors (4xxx)
# ==============================================================================

class NoProtocolRegistered(DeadSwitchError):
    def __init__(self, message: str = "No will found for this user"):
        super().__init__(ErrorCode.NO_PROTOCOL_REGISTERED, message)


class InvalidWillPayload(DeadSwitchError):
    def __init__(self, field_name: str, reason: str):
        super().__init__(
            ErrorCode.INVALID_WILL_PAYLOAD,
            f"Invalid will {field_name}: {reason}",
            {"field": field_name, "reason": reason}
        )


# ==============================================================================
# Remote Errors (5xxx)
# ==============================================================================

class RemoteCallFailed(DeadSwitchError):
    """
    A registry, network or identity round-trip failed.

    ``cause`` carries the collaborator's error text verbatim so it can be
    shown to the user unchanged.
    """

    def __init__(self, operation: str, cause: str):
        self.operation = operation
        self.cause = cause
        super().__init__(
            ErrorCode.REMOTE_CALL_FAILED,
            f"{operation} failed: {cause}",
            {"operation": operation, "cause": cause}
        )
