# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator - Async orchestration layer in front of the restic engine.

Drives restic subcommands with composable, validated options, streams typed
progress events from the engine's JSON output, and computes retention
decisions locally before asking the engine to prune. Package name: resticorch.
"""

__version__ = "0.1.0"

# Repository handle (user-facing API)
from resticorch.repo import Repo, open_repo

# Option builders
from resticorch.builder import (
    create_repo_config,
    with_backup_excludes,
    with_backup_flags,
    with_backup_host,
    with_backup_iexcludes,
    with_backup_parent,
    with_backup_paths,
    with_backup_tags,
    with_binary,
    with_env,
    with_flags,
    with_hosts,
    with_paths,
    with_repo_id,
    with_restore_excludes,
    with_restore_includes,
    with_tags,
    with_workdir,
)

# Value types
from resticorch.config import RepoConfig
from resticorch.events import (
    BackupErrorEntry,
    BackupProgressEntry,
    BackupSummary,
    RestoreProgressEntry,
    RestoreSummary,
)
from resticorch.models import LsEntry, RepoStats, Snapshot
from resticorch.retention import RetentionPolicy, RetentionResult, select_retained

# Environment-based configuration
from resticorch.env import create_repo_config_from_env, create_retention_policy_from_env

__all__ = [
    # Version
    "__version__",
    # Repository
    "Repo",
    "open_repo",
    "RepoConfig",
    "create_repo_config",
    "create_repo_config_from_env",
    # Repository options
    "with_flags",
    "with_env",
    "with_binary",
    "with_workdir",
    "with_repo_id",
    # Backup options
    "with_backup_paths",
    "with_backup_excludes",
    "with_backup_iexcludes",
    "with_backup_tags",
    "with_backup_host",
    "with_backup_parent",
    "with_backup_flags",
    # Query options
    "with_tags",
    "with_hosts",
    "with_paths",
    # Restore options
    "with_restore_includes",
    "with_restore_excludes",
    # Events and results
    "BackupProgressEntry",
    "BackupErrorEntry",
    "BackupSummary",
    "RestoreProgressEntry",
    "RestoreSummary",
    "Snapshot",
    "LsEntry",
    "RepoStats",
    # Retention
    "RetentionPolicy",
    "RetentionResult",
    "select_retained",
    "create_retention_policy_from_env",
]
