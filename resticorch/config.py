# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Configuration - Immutable repository identity.

A RepoConfig binds a repository location to its credential and the global
flags passed to every engine invocation. It is frozen after creation so a
Repo can be shared between concurrent operations.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple


def _validate_flags(flags: Tuple[str, ...]) -> bool:
    """Every global flag must be a non-empty string that starts with '-'."""
    for flag in flags:
        if not isinstance(flag, str) or not flag.startswith("-"):
            return False
    return True


def _validate_env(env: Dict[str, str]) -> bool:
    """Validate extra environment variables."""
    if not isinstance(env, dict):
        return False
    for key, value in env.items():
        if not isinstance(key, str) or not key or "=" in key:
            return False
        if not isinstance(value, str):
            return False
    return True


@dataclass(frozen=True)
class RepoConfig:
    """
    Immutable identity of a restic repository.

    The password is passed to the engine through the RESTIC_PASSWORD
    environment variable and never appears on the command line.
    """

    # Repository location: local path or backend URI (s3:..., sftp:..., rest:...)
    uri: str

    # Repository password
    password: str = field(repr=False)

    # Global flags appended to every invocation, e.g. ("--no-cache",)
    flags: Tuple[str, ...] = ()

    # Engine executable name or path
    binary: str = "restic"

    # Extra environment variables for the engine (backend credentials etc.)
    env: Dict[str, str] = field(default_factory=dict, repr=False)

    # Working directory for the engine; None keeps the caller's
    cwd: Path | None = None

    # Optional caller-side identifier, only used in logs
    repo_id: str = ""

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.uri or not str(self.uri).strip():
            errors.append("uri must not be empty")

        if not self.password:
            errors.append("password must not be empty")

        if not self.binary:
            errors.append("binary must not be empty")

        if not isinstance(self.flags, tuple):
            # Accept lists from builder dicts but store them immutably
            object.__setattr__(self, "flags", tuple(self.flags))

        if not _validate_flags(self.flags):
            from resticorch.errors import explain_invalid_flags

            errors.append(explain_invalid_flags(self.flags))

        if not _validate_env(self.env):
            errors.append("env must map non-empty names to string values")

        if self.cwd is not None and not isinstance(self.cwd, Path):
            object.__setattr__(self, "cwd", Path(self.cwd))

        if errors:
            from resticorch.exceptions import ConfigurationError

            raise ConfigurationError(
                "Repository configuration validation failed",
                details={"errors": errors},
            )

    def engine_env(self) -> Dict[str, str]:
        """Environment overrides for an engine invocation."""
        return {
            **self.env,
            "RESTIC_REPOSITORY": self.uri,
            "RESTIC_PASSWORD": self.password,
        }

    def with_updates(self, **kwargs) -> "RepoConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return RepoConfig(**current)
