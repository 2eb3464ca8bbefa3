# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Event Parser - Typed events from engine JSON output.

With --json, restic writes one JSON object per line for backup and restore
progress. Each line is decoded into a progress entry, an error entry or a
terminal summary. Decoding is total: anything that is not a known JSON
message yields None and never raises.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, TypeVar, Union

import structlog

from resticorch.errors import explain_missing_summary
from resticorch.exceptions import MissingSummaryError

logger = structlog.get_logger()


def decode_json_line(line: str) -> Dict[str, Any] | None:
    """
    Decode one output line as a JSON object.

    Returns:
        The decoded dict, or None for plain text, malformed JSON and
        non-object JSON values
    """
    text = line.strip()
    if not text.startswith("{"):
        return None
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def _float(data: Dict[str, Any], key: str) -> float:
    value = data.get(key)
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


# ============================================================================
# Backup events
# ============================================================================

@dataclass(frozen=True)
class BackupProgressEntry:
    """In-progress status of a running backup."""

    seconds_elapsed: float
    percent_done: float
    total_files: int
    files_done: int
    total_bytes: int
    bytes_done: int
    error_count: int
    current_files: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "BackupProgressEntry":
        current = data.get("current_files") or []
        return cls(
            seconds_elapsed=_float(data, "seconds_elapsed"),
            percent_done=_float(data, "percent_done"),
            total_files=_int(data, "total_files"),
            files_done=_int(data, "files_done"),
            total_bytes=_int(data, "total_bytes"),
            bytes_done=_int(data, "bytes_done"),
            error_count=_int(data, "error_count"),
            current_files=[str(f) for f in current] if isinstance(current, list) else [],
        )


@dataclass(frozen=True)
class BackupErrorEntry:
    """A non-fatal error reported while the backup kept running."""

    message: str
    during: str
    item: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "BackupErrorEntry":
        error = data.get("error")
        if isinstance(error, dict):
            message = str(error.get("message", ""))
        else:
            message = str(error or "")
        return cls(
            message=message,
            during=str(data.get("during", "")),
            item=str(data.get("item", "")),
        )


@dataclass
class BackupSummary:
    """Terminal event of a backup run."""

    snapshot_id: str
    files_new: int
    files_changed: int
    files_unmodified: int
    dirs_new: int
    dirs_changed: int
    dirs_unmodified: int
    data_blobs: int
    tree_blobs: int
    data_added: int
    total_files_processed: int
    total_bytes_processed: int
    total_duration: float
    error_count: int = 0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "BackupSummary":
        return cls(
            snapshot_id=str(data.get("snapshot_id") or ""),
            files_new=_int(data, "files_new"),
            files_changed=_int(data, "files_changed"),
            files_unmodified=_int(data, "files_unmodified"),
            dirs_new=_int(data, "dirs_new"),
            dirs_changed=_int(data, "dirs_changed"),
            dirs_unmodified=_int(data, "dirs_unmodified"),
            data_blobs=_int(data, "data_blobs"),
            tree_blobs=_int(data, "tree_blobs"),
            data_added=_int(data, "data_added"),
            total_files_processed=_int(data, "total_files_processed"),
            total_bytes_processed=_int(data, "total_bytes_processed"),
            total_duration=_float(data, "total_duration"),
        )


BackupEvent = Union[BackupProgressEntry, BackupErrorEntry, BackupSummary]


def parse_backup_event(data: Dict[str, Any]) -> BackupEvent | None:
    """Map a decoded `restic backup --json` message to an event."""
    message_type = data.get("message_type")
    if message_type == "status":
        return BackupProgressEntry.from_json(data)
    if message_type == "summary":
        return BackupSummary.from_json(data)
    if message_type == "error":
        return BackupErrorEntry.from_json(data)
    # verbose_status and unknown message types carry nothing we report
    return None


# ============================================================================
# Restore events
# ============================================================================

@dataclass(frozen=True)
class RestoreProgressEntry:
    """In-progress status of a running restore."""

    seconds_elapsed: float
    percent_done: float
    total_files: int
    files_restored: int
    files_skipped: int
    total_bytes: int
    bytes_restored: int
    bytes_skipped: int

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RestoreProgressEntry":
        return cls(
            seconds_elapsed=_float(data, "seconds_elapsed"),
            percent_done=_float(data, "percent_done"),
            total_files=_int(data, "total_files"),
            files_restored=_int(data, "files_restored"),
            files_skipped=_int(data, "files_skipped"),
            total_bytes=_int(data, "total_bytes"),
            bytes_restored=_int(data, "bytes_restored"),
            bytes_skipped=_int(data, "bytes_skipped"),
        )


@dataclass
class RestoreSummary:
    """Terminal event of a restore run."""

    seconds_elapsed: float
    total_files: int
    files_restored: int
    files_skipped: int
    total_bytes: int
    bytes_restored: int
    bytes_skipped: int
    error_count: int = 0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RestoreSummary":
        return cls(
            seconds_elapsed=_float(data, "seconds_elapsed"),
            total_files=_int(data, "total_files"),
            files_restored=_int(data, "files_restored"),
            files_skipped=_int(data, "files_skipped"),
            total_bytes=_int(data, "total_bytes"),
            bytes_restored=_int(data, "bytes_restored"),
            bytes_skipped=_int(data, "bytes_skipped"),
        )


RestoreEvent = Union[RestoreProgressEntry, BackupErrorEntry, RestoreSummary]


def parse_restore_event(data: Dict[str, Any]) -> RestoreEvent | None:
    """Map a decoded `restic restore --json` message to an event."""
    message_type = data.get("message_type")
    if message_type == "status":
        return RestoreProgressEntry.from_json(data)
    if message_type == "summary":
        return RestoreSummary.from_json(data)
    if message_type == "error":
        return BackupErrorEntry.from_json(data)
    return None


# ============================================================================
# Per-invocation collector
# ============================================================================

E = TypeVar("E")
S = TypeVar("S", BackupSummary, RestoreSummary)


class EventCollector(Generic[E, S]):
    """
    Decode the output of one streaming invocation and track its summary.

    The first terminal summary wins; later ones are logged and ignored.
    Error entries are counted into the summary's error_count, including
    errors that arrive on stderr after the summary was seen.
    """

    def __init__(
        self,
        operation: str,
        parse: Callable[[Dict[str, Any]], E | None],
        summary_type: type,
    ) -> None:
        self.operation = operation
        self._parse = parse
        self._summary_type = summary_type
        self.summary: S | None = None
        self.error_count = 0
        self.events_seen = 0

    def feed(self, line: str) -> E | None:
        """
        Decode an output line from either stream.

        Returns:
            The parsed event, or None when the line is not a known message
        """
        data = decode_json_line(line)
        if data is None:
            return None
        event = self._parse(data)
        if event is None:
            return None

        self.events_seen += 1
        if isinstance(event, BackupErrorEntry):
            self.error_count += 1
            if self.summary is not None:
                # stderr errors can arrive after the stdout summary
                self.summary.error_count = self.error_count
            logger.warning(
                "engine_item_error",
                operation=self.operation,
                during=event.during,
                item=event.item,
                error=event.message,
            )
        elif isinstance(event, self._summary_type):
            if self.summary is None:
                event.error_count = self.error_count
                self.summary = event
            else:
                logger.warning("duplicate_summary_ignored", operation=self.operation)
                return None
        return event

    def require_summary(self) -> S:
        """
        Return the terminal summary of a successful run.

        Raises:
            MissingSummaryError: If no summary was parsed
        """
        if self.summary is None:
            raise MissingSummaryError(
                explain_missing_summary(self.operation),
                details={"events_seen": self.events_seen},
            )
        return self.summary


def backup_collector() -> "EventCollector[BackupEvent, BackupSummary]":
    return EventCollector("backup", parse_backup_event, BackupSummary)


def restore_collector() -> "EventCollector[RestoreEvent, RestoreSummary]":
    return EventCollector("restore", parse_restore_event, RestoreSummary)
