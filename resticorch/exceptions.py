# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Exceptions - Custom exceptions for the resticorch package.

The hierarchy follows the failure classes callers need to tell apart:
bad input, an engine that never started, an engine that failed, an engine
whose output broke its contract, and an operation the caller gave up on.
"""

import asyncio
from typing import List


class ResticOrchError(Exception):
    """Base exception for all resticorch errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ResticOrchError):
    """Raised when options, repository identity or a policy are invalid."""

    pass


class ProcessStartError(ResticOrchError):
    """Raised when the engine executable cannot be launched."""

    pass


class EngineError(ResticOrchError):
    """Raised when the engine exits with a non-zero status."""

    @property
    def exit_code(self) -> int | None:
        return self.details.get("exit_code")

    @property
    def stderr(self) -> List[str]:
        return list(self.details.get("stderr", []))


class RepositoryLockedError(EngineError):
    """
    Raised when the engine reports lock contention on the repository.

    The operation can be retried once the competing process finishes, or
    after stale locks were removed with Repo.unlock().
    """

    pass


class ParseIntegrityError(ResticOrchError):
    """Raised when engine output does not match the expected format."""

    pass


class MissingSummaryError(ParseIntegrityError):
    """Raised when the engine exits cleanly without a terminal summary."""

    pass


class InvalidSnapshotError(ParseIntegrityError):
    """Raised when a listed snapshot is malformed or has a zero timestamp."""

    pass


class OperationCancelledError(ResticOrchError):
    """Raised when an operation was cancelled or its deadline expired."""

    pass


class CallerCancelledError(OperationCancelledError, asyncio.CancelledError):
    """
    Raised when the task running an operation was cancelled.

    It is also an asyncio.CancelledError: the task still ends cancelled, and
    TaskGroup reports it as a cancellation rather than a failure.
    Handlers catching ResticOrchError or Exception should re-raise it.
    """

    pass
