# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Builder - Functional option composition.

Each option is a small step: a function that takes an argument dict and
returns a new dict with the modification applied (immutable updates).
Steps are applied left to right in the order the caller supplied them, and
list-valued fields accumulate. Validation happens only when the complete
invocation is assembled by one of the build_* functions.

Example:
    await repo.backup(
        None,
        with_backup_paths("/srv/data"),
        with_backup_excludes("*.tmp", "cache/"),
        with_backup_tags("nightly"),
    )
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from resticorch.config import RepoConfig
from resticorch.errors import explain_missing_restore_target, explain_no_backup_paths
from resticorch.exceptions import ConfigurationError


# Type aliases for builder steps
ArgsDict = Dict[str, Any]
BuilderFunc = Callable[[ArgsDict], ArgsDict]
BackupOption = BuilderFunc
GenericOption = BuilderFunc
RestoreOption = BuilderFunc
RepoOption = BuilderFunc


def _append(key: str, values: Sequence[Any]) -> BuilderFunc:
    """Return a step that appends values to the list stored under key."""
    items = [str(v) for v in values]

    def step(args: ArgsDict) -> ArgsDict:
        return {**args, key: list(args.get(key, [])) + items}

    return step


def _assign(key: str, value: Any) -> BuilderFunc:
    """Return a step that sets key to value."""

    def step(args: ArgsDict) -> ArgsDict:
        return {**args, key: value}

    return step


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder steps into a single step.

    Args:
        *funcs: Builder steps to compose

    Returns:
        A single step that applies all steps in sequence
    """

    def composed(args: ArgsDict) -> ArgsDict:
        result = args
        for func in funcs:
            result = func(result)
        return result

    return composed


# ============================================================================
# Backup options
# ============================================================================

def create_empty_backup_args() -> ArgsDict:
    """
    Create the initial backup argument dictionary.

    Returns:
        Dict with default values for all backup fields
    """
    return {
        "paths": [],
        "excludes": [],
        "iexcludes": [],
        "tags": [],
        "host": None,
        "parent": None,
        "extra_flags": [],
    }


def with_backup_paths(*paths: str | Path) -> BackupOption:
    """
    Add paths to back up. Repeated use accumulates paths.

    Args:
        *paths: Files or directories to include in the snapshot

    Returns:
        Builder step adding the paths
    """
    return _append("paths", paths)


def with_backup_excludes(*patterns: str) -> BackupOption:
    """
    Add exclude patterns, passed verbatim to the engine as --exclude.

    A file is skipped if it matches any one of the patterns.

    Args:
        *patterns: Glob patterns understood by restic

    Returns:
        Builder step adding the patterns
    """
    return _append("excludes", patterns)


def with_backup_iexcludes(*patterns: str) -> BackupOption:
    """
    Add case-insensitive exclude patterns (--iexclude).

    Args:
        *patterns: Glob patterns understood by restic

    Returns:
        Builder step adding the patterns
    """
    return _append("iexcludes", patterns)


def with_backup_tags(*tags: str) -> BackupOption:
    """
    Add tags to the snapshot created by the backup.

    Args:
        *tags: Tag strings; duplicates are left to the engine

    Returns:
        Builder step adding the tags
    """
    return _append("tags", tags)


def with_backup_host(host: str) -> BackupOption:
    """
    Override the hostname recorded in the snapshot.

    Args:
        host: Hostname to record

    Returns:
        Builder step setting the host
    """
    return _assign("host", host)


def with_backup_parent(snapshot_id: str) -> BackupOption:
    """
    Use an explicit parent snapshot for change detection.

    Args:
        snapshot_id: Full or short snapshot ID

    Returns:
        Builder step setting the parent
    """
    return _assign("parent", snapshot_id)


def with_backup_flags(*flags: str) -> BackupOption:
    """
    Pass additional flags straight through to `restic backup`.

    Args:
        *flags: Raw command line flags, e.g. "--exclude-caches"

    Returns:
        Builder step adding the flags
    """
    return _append("extra_flags", flags)


def build_backup_args(args: ArgsDict) -> List[str]:
    """
    Validate backup arguments and render them as engine flags.

    Paths come last so that they are positional arguments.

    Args:
        args: Argument dictionary built from backup steps

    Returns:
        Operation-specific argument vector (flags followed by paths)

    Raises:
        ConfigurationError: If no backup path was supplied
    """
    if not args.get("paths"):
        raise ConfigurationError(explain_no_backup_paths())

    argv: List[str] = []
    for pattern in args.get("excludes", []):
        argv.extend(["--exclude", pattern])
    for pattern in args.get("iexcludes", []):
        argv.extend(["--iexclude", pattern])
    for tag in args.get("tags", []):
        argv.extend(["--tag", tag])
    if args.get("host"):
        argv.extend(["--host", args["host"]])
    if args.get("parent"):
        argv.extend(["--parent", args["parent"]])
    argv.extend(args.get("extra_flags", []))
    argv.extend(args["paths"])
    return argv


def build_backup_from_steps(*steps: BackupOption) -> List[str]:
    """
    Apply backup steps to an empty argument dict and render the result.

    Args:
        *steps: Backup options in the order supplied by the caller

    Returns:
        Operation-specific argument vector
    """
    return build_backup_args(pipe(*steps)(create_empty_backup_args()))


# ============================================================================
# Generic query options (snapshots, forget scope)
# ============================================================================

def create_empty_query_args() -> ArgsDict:
    """
    Create the initial query argument dictionary.

    Returns:
        Dict with empty filter lists
    """
    return {"tags": [], "hosts": [], "paths": []}


def with_tags(*tags: str) -> GenericOption:
    """
    Only match snapshots carrying every one of the given tags.

    Args:
        *tags: Required tags

    Returns:
        Builder step adding the tag filter
    """
    return _append("tags", tags)


def with_hosts(*hosts: str) -> GenericOption:
    """
    Only match snapshots taken on one of the given hosts.

    Args:
        *hosts: Accepted hostnames

    Returns:
        Builder step adding the host filter
    """
    return _append("hosts", hosts)


def with_paths(*paths: str | Path) -> GenericOption:
    """
    Only match snapshots that include the given path.

    Args:
        *paths: Snapshot source paths

    Returns:
        Builder step adding the path filter
    """
    return _append("paths", paths)


def build_query_args(args: ArgsDict) -> List[str]:
    """
    Render query filters as engine flags.

    Tags are joined into a single --tag flag, which the engine treats as
    "all of these tags". Hosts and paths are repeated flags, any of which
    may match.

    Args:
        args: Argument dictionary built from generic steps

    Returns:
        Operation-specific argument vector
    """
    argv: List[str] = []
    tags = args.get("tags", [])
    if tags:
        argv.extend(["--tag", ",".join(tags)])
    for host in args.get("hosts", []):
        argv.extend(["--host", host])
    for path in args.get("paths", []):
        argv.extend(["--path", path])
    return argv


def build_query_from_steps(*steps: GenericOption) -> List[str]:
    """Apply generic steps to an empty argument dict and render the result."""
    return build_query_args(pipe(*steps)(create_empty_query_args()))


# ============================================================================
# Restore options
# ============================================================================

def create_empty_restore_args() -> ArgsDict:
    """Create the initial restore argument dictionary."""
    return {"target": "", "includes": [], "excludes": []}


def with_restore_includes(*patterns: str) -> RestoreOption:
    """
    Only restore files matching one of the patterns (--include).

    Args:
        *patterns: Glob patterns understood by restic

    Returns:
        Builder step adding the patterns
    """
    return _append("includes", patterns)


def with_restore_excludes(*patterns: str) -> RestoreOption:
    """
    Skip files matching one of the patterns (--exclude).

    Args:
        *patterns: Glob patterns understood by restic

    Returns:
        Builder step adding the patterns
    """
    return _append("excludes", patterns)


def build_restore_args(args: ArgsDict) -> List[str]:
    """
    Validate restore arguments and render them as engine flags.

    Raises:
        ConfigurationError: If no target directory was supplied
    """
    target = str(args.get("target") or "")
    if not target.strip():
        raise ConfigurationError(explain_missing_restore_target())

    argv = ["--target", target]
    for pattern in args.get("includes", []):
        argv.extend(["--include", pattern])
    for pattern in args.get("excludes", []):
        argv.extend(["--exclude", pattern])
    return argv


# ============================================================================
# Repository options
# ============================================================================

def create_empty_repo_args() -> ArgsDict:
    """
    Create the initial repository configuration dictionary.

    Returns:
        Dict with default values for all RepoConfig fields
    """
    return {
        "uri": "",
        "password": "",
        "flags": [],
        "binary": "restic",
        "env": {},
        "cwd": None,
        "repo_id": "",
    }


def with_flags(*flags: str) -> RepoOption:
    """
    Add global flags passed to every invocation, e.g. "--no-cache".

    Args:
        *flags: Command line flags

    Returns:
        Builder step adding the flags
    """
    return _append("flags", flags)


def with_env(**env: str) -> RepoOption:
    """
    Add environment variables for the engine, e.g. backend credentials.

    Args:
        **env: Variable names and values

    Returns:
        Builder step merging the variables
    """

    def step(args: ArgsDict) -> ArgsDict:
        return {**args, "env": {**args.get("env", {}), **env}}

    return step


def with_binary(binary: str | Path) -> RepoOption:
    """
    Use a specific engine executable.

    Args:
        binary: Executable name on PATH or absolute path

    Returns:
        Builder step setting the executable
    """
    return _assign("binary", str(binary))


def with_workdir(cwd: str | Path) -> RepoOption:
    """
    Run the engine in the given working directory.

    Args:
        cwd: Directory relative backup paths are resolved against

    Returns:
        Builder step setting the working directory
    """
    return _assign("cwd", Path(cwd))


def with_repo_id(repo_id: str) -> RepoOption:
    """
    Attach a caller-side identifier used in log events.

    Args:
        repo_id: Free-form identifier

    Returns:
        Builder step setting the identifier
    """
    return _assign("repo_id", repo_id)


def build_repo_config(args: ArgsDict) -> RepoConfig:
    """
    Validate and build an immutable RepoConfig from an argument dictionary.

    Raises:
        ConfigurationError: If validation fails
    """
    return RepoConfig(
        uri=args["uri"],
        password=args["password"],
        flags=tuple(args.get("flags", [])),
        binary=args.get("binary") or "restic",
        env=dict(args.get("env", {})),
        cwd=args.get("cwd"),
        repo_id=args.get("repo_id", ""),
    )


def create_repo_config(
    uri: str | Path,
    password: str,
    *steps: RepoOption,
    **kwargs: Any,
) -> RepoConfig:
    """
    Create a repository configuration.

    This is the recommended user-facing API for describing a repository.

    Args:
        uri: Repository location (local path or backend URI)
        password: Repository password
        *steps: Repository options such as with_flags("--no-cache")
        **kwargs: Additional RepoConfig fields applied after the steps

    Returns:
        Validated, immutable RepoConfig instance

    Example:
        config = create_repo_config(
            "/srv/restic-repo",
            "secret",
            with_flags("--no-cache"),
        )
    """
    args = create_empty_repo_args()
    args["uri"] = str(uri)
    args["password"] = password
    args = pipe(*steps)(args)

    for key, value in kwargs.items():
        if key in args:
            args[key] = value

    return build_repo_config(args)
