# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Repository - High-level operations on one repository.

A Repo binds an immutable RepoConfig and turns composed options into engine
invocations. Long-running operations (backup, restore) stream typed events
to an optional progress sink; listing operations return typed results.

A Repo holds no mutable state, so independent operations may run
concurrently. The engine serializes conflicting repository locks itself;
contention surfaces as RepositoryLockedError.
"""

import inspect
from pathlib import Path
from typing import Any, Awaitable, Callable, List, TextIO, Tuple
from urllib.parse import urlparse

import structlog

from resticorch.builder import (
    BackupOption,
    GenericOption,
    RepoOption,
    RestoreOption,
    build_backup_from_steps,
    build_query_from_steps,
    build_restore_args,
    create_empty_restore_args,
    create_repo_config,
    pipe,
)
from resticorch.config import RepoConfig
from resticorch.errors import explain_missing_snapshot_id
from resticorch.events import (
    BackupEvent,
    BackupSummary,
    RestoreEvent,
    RestoreSummary,
    backup_collector,
    restore_collector,
)
from resticorch.exceptions import ConfigurationError
from resticorch.models import (
    LsEntry,
    RepoStats,
    Snapshot,
    parse_ls_output,
    parse_snapshot_list,
    parse_stats,
)
from resticorch.retention import RetentionPolicy, RetentionResult, select_retained
from resticorch.runner import (
    LineHandler,
    OutputStream,
    ProcessResult,
    build_command,
    raise_for_status,
    run_process,
)

logger = structlog.get_logger()

ProgressSink = Callable[[Any], Awaitable[None] | None]


def _mask_uri(uri: str) -> str:
    """Mask a password embedded in a backend URI for logging."""
    # Backend prefixes such as "rest:" precede the actual URL
    start = uri.find("://")
    if start < 0:
        return uri
    scheme_start = uri.rfind(":", 0, start) + 1
    parsed = urlparse(uri[scheme_start:] if scheme_start else uri)
    if parsed.password:
        return uri.replace(f":{parsed.password}@", ":***@")
    return uri


async def _notify(sink: ProgressSink | None, event: Any) -> None:
    """Deliver one event to the caller's sink; sink failures never fail the run."""
    if sink is None:
        return
    try:
        result = sink(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning("progress_sink_failed", event_type=type(event).__name__, error=str(e))


def _forward(output: TextIO | None, stream: OutputStream, line: str) -> None:
    """Write a raw engine line to the caller's text sink, or log it."""
    if not line.strip():
        return
    if output is not None:
        output.write(line + "\n")
    else:
        logger.debug("engine_output", stream=stream.value, line=line)


def _require_snapshot_id(snapshot_id: str) -> None:
    if not snapshot_id or not snapshot_id.strip():
        raise ConfigurationError(explain_missing_snapshot_id())


class Repo:
    """
    Handle for one restic repository.

    Example:
        repo = open_repo("/srv/restic-repo", "secret", with_flags("--no-cache"))
        await repo.init()
        summary = await repo.backup(print, with_backup_paths("/srv/data"))
    """

    def __init__(self, config: RepoConfig) -> None:
        self.config = config
        self._log = logger.bind(repo=config.repo_id or _mask_uri(config.uri))

    def __repr__(self) -> str:
        return f"Repo(uri={_mask_uri(self.config.uri)!r})"

    async def _run(
        self,
        subcommand: str,
        args: List[str],
        *,
        on_line: LineHandler | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run one engine subcommand and raise on a non-zero exit."""
        command = build_command(self.config.binary, subcommand, self.config.flags, args)
        result = await run_process(
            command,
            env=self.config.engine_env(),
            cwd=self.config.cwd,
            on_line=on_line,
            timeout=timeout,
            operation=subcommand,
        )
        raise_for_status(result)
        return result

    async def _run_collect(self, subcommand: str, args: List[str], *, timeout: float | None = None) -> List[str]:
        """Run a subcommand and return its stdout lines."""
        stdout: List[str] = []

        def on_line(stream: OutputStream, line: str) -> None:
            if stream is OutputStream.STDOUT:
                stdout.append(line)
            else:
                _forward(None, stream, line)

        await self._run(subcommand, args, on_line=on_line, timeout=timeout)
        return stdout

    async def init(self, *, timeout: float | None = None) -> None:
        """
        Create the repository storage.

        Raises:
            EngineError: If the location is already initialized or unreachable
        """
        await self._run("init", [], timeout=timeout)
        self._log.info("repository_initialized")

    async def backup(
        self,
        progress: ProgressSink | None = None,
        *opts: BackupOption,
        log_output: TextIO | None = None,
        timeout: float | None = None,
    ) -> BackupSummary:
        """
        Back up the configured paths and stream progress to a sink.

        The sink is called once per event, in arrival order, never
        concurrently. It receives BackupProgressEntry, BackupErrorEntry and
        finally the BackupSummary. Passing None only disables notification.

        Args:
            progress: Callable receiving each event (may be async)
            *opts: Backup options; at least one with_backup_paths() is required
            log_output: Optional text sink for plain-text engine output
            timeout: Seconds before the engine is terminated

        Returns:
            The terminal BackupSummary

        Raises:
            ConfigurationError: If no backup path was supplied (no process is started)
            ProcessStartError: If the engine cannot be launched
            EngineError: If the engine exits with a non-zero status
            MissingSummaryError: If the engine exits cleanly without a summary
            OperationCancelledError: On cancellation or deadline expiry
        """
        argv = build_backup_from_steps(*opts)
        collector = backup_collector()

        async def on_line(stream: OutputStream, line: str) -> None:
            # restic prints JSON error messages on stderr, status and summary on stdout
            event: BackupEvent | None = collector.feed(line)
            if event is not None:
                await _notify(progress, event)
            elif not line.lstrip().startswith("{"):
                _forward(log_output, stream, line)

        self._log.info("backup_started", args=argv)
        await self._run("backup", ["--json", *argv], on_line=on_line, timeout=timeout)
        summary = collector.require_summary()

        self._log.info(
            "backup_completed",
            snapshot_id=summary.snapshot_id,
            files=summary.total_files_processed,
            bytes=summary.total_bytes_processed,
            errors=summary.error_count,
            duration=summary.total_duration,
        )
        return summary

    async def snapshots(self, *opts: GenericOption, timeout: float | None = None) -> List[Snapshot]:
        """
        List snapshots, optionally filtered.

        Tag filters require every listed tag to be present.

        Returns:
            Snapshots in engine output order

        Raises:
            InvalidSnapshotError: If the engine lists a snapshot with a zero timestamp
        """
        lines = await self._run_collect("snapshots", ["--json", *build_query_from_steps(*opts)], timeout=timeout)
        snapshots = parse_snapshot_list(lines)
        self._log.debug("snapshots_listed", count=len(snapshots))
        return snapshots

    async def list_directory(
        self,
        snapshot_id: str,
        path: str | Path,
        *,
        timeout: float | None = None,
    ) -> Tuple[Snapshot, List[LsEntry]]:
        """
        List a path inside a snapshot.

        Returns:
            The snapshot metadata and the entries under path, including the
            path's own entry
        """
        _require_snapshot_id(snapshot_id)
        lines = await self._run_collect("ls", ["--json", snapshot_id, str(path)], timeout=timeout)
        snapshot, entries = parse_ls_output(lines)
        self._log.debug("directory_listed", snapshot_id=snapshot.id, path=str(path), entries=len(entries))
        return snapshot, entries

    async def forget(
        self,
        policy: RetentionPolicy,
        output: TextIO | None = None,
        *opts: GenericOption,
        timeout: float | None = None,
    ) -> RetentionResult:
        """
        Apply a retention policy and prune removed snapshots.

        The keep/remove decision is computed locally from the current
        snapshot listing before the engine is asked to forget and prune the
        removed snapshots. When nothing is removed a plain prune runs instead.
        The engine's text output is written to output unparsed.

        Args:
            policy: Retention rules
            output: Text sink for the engine's diagnostic output
            *opts: Generic options restricting which snapshots are considered
            timeout: Seconds per engine invocation

        Returns:
            RetentionResult with keep and remove ordered newest first
        """
        snapshots = await self.snapshots(*opts, timeout=timeout)
        result = select_retained(snapshots, policy)
        self._log.info("retention_computed", keep=len(result.keep), remove=len(result.remove))

        def on_line(stream: OutputStream, line: str) -> None:
            _forward(output, stream, line)

        if not result.remove:
            # Nothing to forget; a plain prune still reports its completion
            if output is not None:
                output.write("no snapshots to remove\n")
            await self._run("prune", [], on_line=on_line, timeout=timeout)
            self._log.info("repository_pruned")
            return result

        await self._run("forget", ["--prune", *result.remove_ids], on_line=on_line, timeout=timeout)
        self._log.info("snapshots_forgotten", removed=result.remove_ids)
        return result

    async def prune(self, output: TextIO | None = None, *, timeout: float | None = None) -> None:
        """Remove unreferenced data from the repository."""

        def on_line(stream: OutputStream, line: str) -> None:
            _forward(output, stream, line)

        await self._run("prune", [], on_line=on_line, timeout=timeout)
        self._log.info("repository_pruned")

    async def unlock(self, *, remove_all: bool = False, timeout: float | None = None) -> None:
        """
        Remove stale locks.

        Args:
            remove_all: Also remove locks held by live processes
        """
        await self._run("unlock", ["--remove-all"] if remove_all else [], timeout=timeout)
        self._log.info("repository_unlocked", remove_all=remove_all)

    async def stats(self, mode: str = "restore-size", *, timeout: float | None = None) -> RepoStats:
        """
        Report repository statistics.

        Args:
            mode: restic stats mode (restore-size, files-by-contents, raw-data, blobs-per-file)
        """
        lines = await self._run_collect("stats", ["--json", "--mode", mode], timeout=timeout)
        return parse_stats(lines)

    async def restore(
        self,
        snapshot_id: str,
        target: str | Path,
        progress: ProgressSink | None = None,
        *opts: RestoreOption,
        log_output: TextIO | None = None,
        timeout: float | None = None,
    ) -> RestoreSummary:
        """
        Restore a snapshot into target and stream progress to a sink.

        Delivery and failure rules are the same as for backup().

        Returns:
            The terminal RestoreSummary
        """
        _require_snapshot_id(snapshot_id)
        args = pipe(*opts)({**create_empty_restore_args(), "target": str(target)})
        argv = build_restore_args(args)
        collector = restore_collector()

        async def on_line(stream: OutputStream, line: str) -> None:
            event: RestoreEvent | None = collector.feed(line)
            if event is not None:
                await _notify(progress, event)
            elif not line.lstrip().startswith("{"):
                _forward(log_output, stream, line)

        self._log.info("restore_started", snapshot_id=snapshot_id, target=str(target))
        await self._run("restore", ["--json", snapshot_id, *argv], on_line=on_line, timeout=timeout)
        summary = collector.require_summary()

        self._log.info(
            "restore_completed",
            snapshot_id=snapshot_id,
            files=summary.files_restored,
            bytes=summary.bytes_restored,
            errors=summary.error_count,
        )
        return summary


def open_repo(uri: str | Path, password: str, *steps: RepoOption, **kwargs: Any) -> Repo:
    """
    Create a Repo from a location, a password and repository options.

    Example:
        repo = open_repo(tmp_path, "test", with_flags("--no-cache"))
    """
    return Repo(create_repo_config(uri, password, *steps, **kwargs))
