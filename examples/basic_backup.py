# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example backup run with resticorch.

Backs up a directory, prints progress, lists the resulting snapshots and
applies the retention policy configured in the environment.

Run with:
    python examples/basic_backup.py /path/to/data

Environment variables:
    RESTIC_REPOSITORY: Repository location
    RESTIC_PASSWORD or RESTIC_PASSWORD_FILE: Repository password
    RESTICORCH_KEEP_LAST, RESTICORCH_KEEP_DAILY, ...: Retention rules
"""

import asyncio
import sys

import structlog

from resticorch import (
    BackupErrorEntry,
    BackupProgressEntry,
    BackupSummary,
    Repo,
    create_repo_config_from_env,
    create_retention_policy_from_env,
    with_backup_excludes,
    with_backup_paths,
    with_backup_tags,
    with_tags,
)
from resticorch.exceptions import CallerCancelledError, RepositoryLockedError, ResticOrchError

logger = structlog.get_logger()


def print_progress(event) -> None:
    """Render backup events on one status line."""
    if isinstance(event, BackupProgressEntry):
        print(f"\r{event.percent_done:6.1%}  {event.files_done}/{event.total_files} files", end="", flush=True)
    elif isinstance(event, BackupErrorEntry):
        print(f"\nerror: {event.item}: {event.message}")
    elif isinstance(event, BackupSummary):
        print(f"\nsnapshot {event.snapshot_id[:8]} saved")


async def main(paths) -> int:
    repo = Repo(create_repo_config_from_env())
    policy = create_retention_policy_from_env()

    try:
        summary = await repo.backup(
            print_progress,
            with_backup_paths(*paths),
            with_backup_excludes("*.tmp", ".cache"),
            with_backup_tags("example"),
        )
    except CallerCancelledError:
        raise
    except RepositoryLockedError:
        logger.warning("repository_locked", hint="run `restic unlock` if no other backup is running")
        return 2
    except ResticOrchError as e:
        logger.error("backup_failed", error=str(e))
        return 1

    logger.info(
        "backup_done",
        snapshot_id=summary.snapshot_id,
        files=summary.total_files_processed,
        added=summary.data_added,
    )

    for snapshot in await repo.snapshots(with_tags("example")):
        print(f"{snapshot.short_id}  {snapshot.time.isoformat()}  {', '.join(snapshot.paths)}")

    if policy.is_empty:
        logger.info("retention_skipped", reason="no RESTICORCH_KEEP_* variables set")
        return 0

    result = await repo.forget(policy, sys.stdout, with_tags("example"))
    logger.info("retention_applied", kept=len(result.keep), removed=len(result.remove))
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(64)
    sys.exit(asyncio.run(main(sys.argv[1:])))
