# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Restic Orchestrator.

These helpers centralize wording for common configuration and runtime
errors so that all modules present consistent, actionable messages.
"""

from typing import Sequence


def explain_no_backup_paths() -> str:
    """
    Explain that a backup was requested without any paths.
    """

    return (
        "No backup paths were provided. "
        "Pass at least one path with with_backup_paths(...) before calling backup()."
    )


def explain_missing_restore_target() -> str:
    """
    Explain that a restore was requested without a target directory.
    """

    return (
        "Restore target directory is empty. "
        "Pass the directory the snapshot should be restored into."
    )


def explain_missing_snapshot_id() -> str:
    """
    Explain that an operation needs a snapshot ID.
    """

    return (
        "Snapshot ID is empty. "
        "Pass a full or short ID, e.g. the snapshot_id of a BackupSummary."
    )


def explain_missing_repository_env() -> str:
    """
    Explain that the repository location environment variable is missing.
    """

    return (
        "Repository location is not configured. "
        "Set the RESTIC_REPOSITORY environment variable or pass uri=... to create_repo_config()."
    )


def explain_missing_password_env() -> str:
    """
    Explain that neither password environment variable is set.
    """

    return (
        "Repository password is not configured. "
        "Set RESTIC_PASSWORD or RESTIC_PASSWORD_FILE, or pass password=... to create_repo_config()."
    )


def explain_unreadable_password_file(path: str, reason: str) -> str:
    """
    Explain that RESTIC_PASSWORD_FILE points to a file that cannot be read.
    """

    return f"Cannot read RESTIC_PASSWORD_FILE {path!r}: {reason}."


def explain_invalid_keep_env(name: str, value: str | None) -> str:
    """
    Explain that a RESTICORCH_KEEP_* variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a non-negative integer."
    )


def explain_invalid_flags(flags: Sequence[str]) -> str:
    """
    Explain that global flags must look like command line flags.
    """

    return (
        f"Invalid global flags: {list(flags)!r}. "
        "Each flag must start with '-', e.g. with_flags('--no-cache')."
    )


def explain_missing_executable(binary: str) -> str:
    """
    Explain that the engine executable could not be found or launched.
    """

    return (
        f"Cannot launch backup engine {binary!r}. "
        "Install restic or point RESTICORCH_BINARY / with_binary(...) at the executable."
    )


def explain_missing_summary(operation: str) -> str:
    """
    Explain that the engine exited cleanly but never reported a summary.
    """

    return (
        f"restic {operation} exited successfully but no summary event was parsed. "
        "The engine's JSON output format may be unsupported by this version of resticorch."
    )


def explain_deadline_exceeded(operation: str, timeout: float) -> str:
    """
    Explain that an operation ran longer than its deadline.
    """

    return f"restic {operation} did not finish within {timeout:g}s and was terminated."
