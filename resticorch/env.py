# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers are small wrappers around create_repo_config() and
RetentionPolicy. They read the variables restic itself understands plus a
few RESTICORCH_* variables:

- Build a repository configuration from the environment
- Build a retention policy from the environment
"""

from __future__ import annotations

import os
import shlex
from datetime import timedelta
from pathlib import Path
from typing import List

from resticorch.builder import create_repo_config, with_binary, with_flags
from resticorch.config import RepoConfig
from resticorch.errors import (
    explain_invalid_keep_env,
    explain_missing_password_env,
    explain_missing_repository_env,
    explain_unreadable_password_file,
)
from resticorch.exceptions import ConfigurationError
from resticorch.retention import RetentionPolicy


def _read_password() -> str:
    password = os.getenv("RESTIC_PASSWORD")
    if password:
        return password

    password_file = os.getenv("RESTIC_PASSWORD_FILE")
    if not password_file:
        raise ConfigurationError(explain_missing_password_env())
    try:
        password = Path(password_file).expanduser().read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigurationError(explain_unreadable_password_file(password_file, str(exc))) from exc
    if not password:
        raise ConfigurationError(explain_unreadable_password_file(password_file, "file is empty"))
    return password


def _parse_flags(value: str | None) -> List[str]:
    if not value:
        return []
    return shlex.split(value)


def _parse_keep(name: str) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_keep_env(name, value)) from exc
    if count < 0:
        raise ConfigurationError(explain_invalid_keep_env(name, value))
    return count


def _parse_tags(value: str | None) -> List[str]:
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


def create_repo_config_from_env() -> RepoConfig:
    """
    Create a RepoConfig from environment variables.

    Required:
        - RESTIC_REPOSITORY: Repository location
        - RESTIC_PASSWORD or RESTIC_PASSWORD_FILE: Repository password

    Optional environment variables:
        - RESTICORCH_BINARY: Engine executable (default: restic)
        - RESTICORCH_FLAGS: Global flags, shell-quoted, e.g. "--no-cache --limit-upload 1024"
    """

    uri = os.getenv("RESTIC_REPOSITORY")
    if not uri:
        raise ConfigurationError(explain_missing_repository_env())

    password = _read_password()

    steps = [with_flags(*_parse_flags(os.getenv("RESTICORCH_FLAGS")))]
    binary = os.getenv("RESTICORCH_BINARY")
    if binary:
        steps.append(with_binary(binary))

    return create_repo_config(uri, password, *steps)


def create_retention_policy_from_env() -> RetentionPolicy:
    """
    Create a RetentionPolicy from environment variables.

    Unset variables mean "no rule of this kind".

    Optional environment variables:
        - RESTICORCH_KEEP_LAST, RESTICORCH_KEEP_HOURLY, RESTICORCH_KEEP_DAILY,
          RESTICORCH_KEEP_WEEKLY, RESTICORCH_KEEP_MONTHLY, RESTICORCH_KEEP_YEARLY:
          Non-negative integers
        - RESTICORCH_KEEP_WITHIN_HOURS: Non-negative integer number of hours
        - RESTICORCH_KEEP_TAGS: Comma-separated tags
    """

    within_hours = _parse_keep("RESTICORCH_KEEP_WITHIN_HOURS")

    return RetentionPolicy(
        keep_last=_parse_keep("RESTICORCH_KEEP_LAST"),
        keep_hourly=_parse_keep("RESTICORCH_KEEP_HOURLY"),
        keep_daily=_parse_keep("RESTICORCH_KEEP_DAILY"),
        keep_weekly=_parse_keep("RESTICORCH_KEEP_WEEKLY"),
        keep_monthly=_parse_keep("RESTICORCH_KEEP_MONTHLY"),
        keep_yearly=_parse_keep("RESTICORCH_KEEP_YEARLY"),
        keep_within=timedelta(hours=within_hours) if within_hours else None,
        keep_tags=tuple(_parse_tags(os.getenv("RESTICORCH_KEEP_TAGS"))),
    )
