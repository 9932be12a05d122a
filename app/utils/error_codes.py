from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable ndrop API error codes."""

    E001 = "E001"  # Not found
    E002 = "E002"  # Validation: Invalid argument
    E003 = "E003"  # Auth: Unauthenticated
    E004 = "E004"  # Auth: Insufficient permissions
    E005 = "E005"  # Conflict: State conflict
    E006 = "E006"  # State: Failed precondition
    E007 = "E007"  # Internal: Internal error
    E008 = "E008"  # Rate limit: Too many requests


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.E001: "Not found",
    ErrorCode.E002: "Validation error",
    ErrorCode.E003: "Unauthorized",
    ErrorCode.E004: "Insufficient permissions",
    ErrorCode.E005: "State conflict",
    ErrorCode.E006: "Failed precondition",
    ErrorCode.E007: "Internal server error",
    ErrorCode.E008: "Too many requests",
}
