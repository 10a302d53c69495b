"""
Shared error handling utilities for sitterforge.
"""

from typing import Any, Dict, List, Optional, Sequence
from enum import Enum
import traceback


BANNER_WIDTH = 68


class ErrorCode(Enum):
    """Error codes for different types of errors."""

    # Usage Errors
    USAGE_ERROR = "USAGE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Precondition Errors
    NOT_FOUND = "NOT_FOUND"
    CONFIG_ERROR = "CONFIG_ERROR"

    # Process Errors
    COMMAND_ERROR = "COMMAND_ERROR"
    COMMAND_NOT_FOUND = "COMMAND_NOT_FOUND"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class SitterError(Exception):
    """Base exception for all sitterforge errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        exit_code: int = 1,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.exit_code = exit_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "exit_code": self.exit_code,
                "details": self.details
            }
        }


class UsageError(SitterError):
    """Bad arguments or flags."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.USAGE_ERROR,
            exit_code=1,
            details=details
        )


class PreconditionError(SitterError):
    """An expected file or directory is missing."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            exit_code=1,
            details=details
        )


class ConfigurationError(SitterError):
    """Configuration error."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFIG_ERROR,
            exit_code=1,
            details=details
        )


class CommandError(SitterError):
    """Raised when an external command exits non-zero or cannot be started."""

    def __init__(
        self,
        message: str,
        args: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        code: ErrorCode = ErrorCode.COMMAND_ERROR,
    ):
        super().__init__(
            message=message,
            code=code,
            # A process killed by a signal reports a negative return code.
            exit_code=returncode if returncode > 0 else 1,
            details={"command": list(args), "returncode": returncode}
        )
        self.args_list = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def format_error_report(error: BaseException) -> str:
    """Render the fatal error banner: message, details and call stack."""
    lines: List[str] = [" DIE ".center(BANNER_WIDTH, "=")]
    if isinstance(error, SitterError):
        lines.append(f"[{error.code.value}] {error.message}")
        for key, value in error.details.items():
            lines.append(f"  {key}: {value}")
        if isinstance(error, CommandError) and error.stderr:
            lines.append("stderr:")
            lines.extend(f"  {line}" for line in error.stderr.rstrip().splitlines())
    else:
        lines.append(f"{type(error).__name__}: {error}")

    frames = traceback.extract_tb(error.__traceback__)
    if frames:
        lines.append("Call stack:")
        for index, frame in enumerate(reversed(frames)):
            lines.append(f"    [{index}] -- line {frame.lineno} -- {frame.name} ({frame.filename})")
    lines.append(" END ".center(BANNER_WIDTH, "="))
    return "\n".join(lines)
