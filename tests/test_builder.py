# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Option Model Tests for resticorch.

These tests verify option composition and validation:
- Steps apply left to right and list fields accumulate
- Validation happens when the invocation is assembled
- Repository identity validation and credential handling
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from resticorch.builder import (
    build_backup_args,
    build_backup_from_steps,
    build_query_from_steps,
    build_restore_args,
    create_empty_backup_args,
    create_empty_restore_args,
    create_repo_config,
    pipe,
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
from resticorch.config import RepoConfig
from resticorch.exceptions import ConfigurationError


# ============================================================================
# Backup options
# ============================================================================

def test_backup_without_paths_is_rejected():
    """Zero paths is a configuration error at assembly time."""
    with pytest.raises(ConfigurationError, match="No backup paths"):
        build_backup_from_steps()

    with pytest.raises(ConfigurationError):
        build_backup_from_steps(with_backup_excludes("*.tmp"), with_backup_tags("t"))


def test_steps_do_not_validate_early():
    """Building a step never raises; only assembly does."""
    step = with_backup_excludes("*.log")
    args = step(create_empty_backup_args())

    assert args["excludes"] == ["*.log"]
    assert args["paths"] == []


def test_backup_paths_accumulate_in_order():
    argv = build_backup_from_steps(
        with_backup_paths("/data/a"),
        with_backup_paths(Path("/data/b"), "/data/c"),
    )

    assert argv == ["/data/a", "/data/b", "/data/c"]


def test_backup_flags_rendered_before_paths():
    argv = build_backup_from_steps(
        with_backup_paths("/srv"),
        with_backup_excludes("file1*", "*.tmp"),
        with_backup_iexcludes("*.BAK"),
        with_backup_tags("nightly", "db"),
        with_backup_host("web01"),
        with_backup_parent("abc123"),
        with_backup_flags("--exclude-caches"),
    )

    assert argv == [
        "--exclude", "file1*",
        "--exclude", "*.tmp",
        "--iexclude", "*.BAK",
        "--tag", "nightly",
        "--tag", "db",
        "--host", "web01",
        "--parent", "abc123",
        "--exclude-caches",
        "/srv",
    ]


def test_composition_order_only_matters_for_paths():
    a = build_backup_from_steps(with_backup_tags("x"), with_backup_paths("/p"), with_backup_excludes("e"))
    b = build_backup_from_steps(with_backup_excludes("e"), with_backup_paths("/p"), with_backup_tags("x"))

    assert a == b


def test_steps_do_not_mutate_input():
    initial = create_empty_backup_args()
    with_backup_paths("/p")(initial)

    assert initial["paths"] == []


def test_pipe_composes_steps():
    combined = pipe(with_backup_paths("/a"), with_backup_tags("t"))

    assert build_backup_args(combined(create_empty_backup_args())) == ["--tag", "t", "/a"]


# ============================================================================
# Query options
# ============================================================================

def test_query_without_filters_is_empty():
    assert build_query_from_steps() == []


def test_tags_are_joined_for_and_semantics():
    argv = build_query_from_steps(with_tags("tag1"), with_tags("tag2", "tag3"))

    assert argv == ["--tag", "tag1,tag2,tag3"]


def test_hosts_and_paths_are_repeated():
    argv = build_query_from_steps(with_hosts("a", "b"), with_paths("/srv"))

    assert argv == ["--host", "a", "--host", "b", "--path", "/srv"]


# ============================================================================
# Restore options
# ============================================================================

def test_restore_requires_target():
    with pytest.raises(ConfigurationError, match="target"):
        build_restore_args(create_empty_restore_args())


def test_restore_args_rendered():
    args = pipe(with_restore_includes("*.txt"), with_restore_excludes("tmp/*"))(
        {**create_empty_restore_args(), "target": "/restore"}
    )

    assert build_restore_args(args) == [
        "--target", "/restore",
        "--include", "*.txt",
        "--exclude", "tmp/*",
    ]


# ============================================================================
# Repository configuration
# ============================================================================

def test_create_repo_config_applies_steps(temp_dir: Path):
    config = create_repo_config(
        temp_dir / "repo",
        "secret",
        with_flags("--no-cache"),
        with_flags("--limit-upload=100"),
        with_env(AWS_ACCESS_KEY_ID="key"),
        with_binary("/opt/restic"),
        with_workdir(temp_dir),
        with_repo_id("primary"),
    )

    assert config.uri == str(temp_dir / "repo")
    assert config.flags == ("--no-cache", "--limit-upload=100")
    assert config.binary == "/opt/restic"
    assert config.cwd == temp_dir
    assert config.repo_id == "primary"
    assert config.env == {"AWS_ACCESS_KEY_ID": "key"}


def test_password_only_in_engine_env():
    config = create_repo_config("/repo", "secret", with_env(EXTRA="1"))

    env = config.engine_env()
    assert env["RESTIC_REPOSITORY"] == "/repo"
    assert env["RESTIC_PASSWORD"] == "secret"
    assert env["EXTRA"] == "1"
    assert "secret" not in repr(config)


def test_invalid_repo_config_collects_all_errors():
    with pytest.raises(ConfigurationError) as excinfo:
        RepoConfig(uri="", password="", binary="", flags=("no-dash",))

    assert len(excinfo.value.details["errors"]) == 4


def test_repo_config_is_frozen():
    config = create_repo_config("/repo", "secret")

    with pytest.raises(FrozenInstanceError):
        config.uri = "/other"  # type: ignore[misc]

    updated = config.with_updates(uri="/other")
    assert updated.uri == "/other"
    assert config.uri == "/repo"
