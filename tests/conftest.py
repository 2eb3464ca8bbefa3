# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for resticorch tests.

Provides a fake restic executable, repository fixtures, and test data
helpers.
"""

import stat
import sys
import tempfile
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Callable, Generator, List

import pytest
import pytest_asyncio

from resticorch.builder import with_binary, with_flags
from resticorch.models import Snapshot
from resticorch.repo import Repo, open_repo

FAKE_RESTIC = Path(__file__).with_name("fake_restic.py")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def fake_restic(temp_dir: Path) -> Path:
    """
    Create an executable that runs the fake engine with this interpreter.
    """
    bin_dir = temp_dir / "bin"
    bin_dir.mkdir()
    script = bin_dir / "restic"
    script.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_RESTIC}" "$@"\n')
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def repo(temp_dir: Path, fake_restic: Path) -> Repo:
    """Create a repository handle backed by the fake engine."""
    return open_repo(
        temp_dir / "repo",
        "test",
        with_flags("--no-cache"),
        with_binary(fake_restic),
    )


@pytest_asyncio.fixture
async def initialized_repo(repo: Repo) -> Repo:
    """Create an initialized repository."""
    await repo.init()
    return repo


def create_test_data(root: Path, count: int = 100) -> Path:
    """Create `count` small files named file00, file01, ... under root."""
    root.mkdir(parents=True, exist_ok=True)
    for i in range(count):
        (root / f"file{i:02d}").write_text(f"test data {i}")
    return root


@pytest.fixture
def make_test_data(temp_dir: Path) -> Callable[[str], Path]:
    """Factory creating a fresh 100-file directory per call."""
    created: List[Path] = []

    def factory(name: str = "data") -> Path:
        path = create_test_data(temp_dir / f"{name}{len(created)}")
        created.append(path)
        return path

    return factory


def make_snapshot(snapshot_id: str, time: datetime, tags: tuple = ()) -> Snapshot:
    """Build a Snapshot value without going through the engine."""
    return Snapshot(id=snapshot_id, time=time, short_id=snapshot_id[:8], tags=tags)


@pytest.fixture
def snapshot_factory() -> Callable[..., Snapshot]:
    """Expose make_snapshot to test modules."""
    return make_snapshot


@pytest.fixture
def hourly_snapshots() -> List[Snapshot]:
    """Ten snapshots one hour apart, oldest first."""
    base = datetime(2026, 3, 1, 8, 0, tzinfo=UTC)
    return [make_snapshot(f"snap{i:02d}", base + timedelta(hours=i)) for i in range(10)]

