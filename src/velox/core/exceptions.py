"""Exception hierarchy for velox.

Every exception carries a stable numeric ``code`` (ErrorCode) that callers
may branch on, and an ``exit_code`` (ExitCode) used by the CLI.
"""

from __future__ import annotations

import time
import traceback
from typing import Any

from velox.core.error_codes import ErrorCode
from velox.core.exit_codes import ExitCode


class VeloxError(Exception):
    """Base exception for all velox errors."""

    code: int = ErrorCode.GENERAL_ERROR
    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str, *, code: int | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_dict(self, *, stacktrace: bool = False) -> dict[str, Any]:
        """Render the error as a JSON-serializable mapping."""
        data: dict[str, Any] = {
            "timestamp": int(time.time()),
            "class": type(self).__name__,
            "code": int(self.code),
            "message": self.message,
        }
        cause = self.__cause__
        if isinstance(cause, VeloxError):
            data["previous"] = cause.to_dict(stacktrace=stacktrace)
        elif cause is not None:
            data["previous"] = {"class": type(cause).__name__, "message": str(cause)}
        else:
            data["previous"] = None
        if stacktrace:
            data["trace"] = traceback.format_tb(self.__traceback__)
        return data


class ConfigError(VeloxError):
    """Missing or invalid connection parameters, malformed config, bad flag combinations."""

    code: int = ErrorCode.CONFIG_INVALID
    exit_code: int = ExitCode.CONFIG_ERROR


class InputError(VeloxError):
    """File not found, input given to a procedure that takes none."""

    code: int = ErrorCode.INPUT_MISSING
    exit_code: int = ExitCode.INPUT_ERROR


class CompilationError(VeloxError):
    """Criteria or parameters rejected before any database round trip."""

    code: int = ErrorCode.CRITERIA_INVALID
    exit_code: int = ExitCode.COMPILATION_ERROR


class ExecutionError(VeloxError):
    """Statement preparation or execution failed at the database."""

    code: int = ErrorCode.EXECUTE_FAILED
    exit_code: int = ExitCode.GENERAL_ERROR


class NetworkError(ExecutionError):
    """Connection failures, unreachable host."""

    code: int = ErrorCode.CONNECTION_FAILED
    exit_code: int = ExitCode.NETWORK_ERROR


class TimeoutError(NetworkError):
    """Statement timeout, connection timeout."""

    code: int = ErrorCode.STATEMENT_TIMEOUT
    exit_code: int = ExitCode.TIMEOUT


class TransactionError(VeloxError):
    """A Transaction step failed; touched connections were rolled back.

    ``rollback_errors`` holds every failure raised while rolling back, so a
    failed rollback is reported next to the original cause.
    """

    code: int = ErrorCode.TRANSACTION_STEP_FAILED
    exit_code: int = ExitCode.TRANSACTION_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        step_index: int | None = None,
        rollback_errors: list[Exception] | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.step_index = step_index
        self.rollback_errors = rollback_errors or []

    def to_dict(self, *, stacktrace: bool = False) -> dict[str, Any]:
        data = super().to_dict(stacktrace=stacktrace)
        data["step_index"] = self.step_index
        data["rollback_errors"] = [str(e) for e in self.rollback_errors]
        return data


class CommitError(TransactionError):
    """One or more touched connections failed to commit."""

    code: int = ErrorCode.COMMIT_FAILED

    def __init__(self, message: str, failures: list[Exception]) -> None:
        super().__init__(message)
        self.failures = failures

    def to_dict(self, *, stacktrace: bool = False) -> dict[str, Any]:
        data = super().to_dict(stacktrace=stacktrace)
        data["failures"] = [str(e) for e in self.failures]
        return data


class ConsistencyError(VeloxError):
    """Results cannot be interpreted unambiguously (e.g. multiple result sets)."""

    code: int = ErrorCode.MULTIPLE_RESULT_SETS
    exit_code: int = ExitCode.CONSISTENCY_ERROR


class CancelledError(VeloxError):
    """The operation was cancelled or its deadline passed."""

    code: int = ErrorCode.CANCELLED
    exit_code: int = ExitCode.CANCELLED
