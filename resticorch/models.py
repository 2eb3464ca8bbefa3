# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Models - Snapshots, directory entries and repository stats.

These are read-only value objects decoded from engine JSON output. Snapshot
decoding is strict: a snapshot without an ID or with a zero timestamp is a
contract violation, because retention ordering depends on creation time.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Sequence, Tuple

from resticorch.events import decode_json_line
from resticorch.exceptions import InvalidSnapshotError, ParseIntegrityError

# restic prints nanosecond fractions; datetime only keeps microseconds
_FRACTION = re.compile(r"\.(\d+)")


def parse_engine_time(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp as printed by restic.

    Returns:
        Timezone-aware datetime (UTC if the value carries no offset)

    Raises:
        ValueError: If the value is not a timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _unix_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True)
class Snapshot:
    """A snapshot as listed by the engine."""

    id: str
    time: datetime
    short_id: str = ""
    tree: str = ""
    parent: str = ""
    hostname: str = ""
    username: str = ""
    paths: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    @property
    def unix_time_ms(self) -> int:
        return _unix_ms(self.time)

    def has_tags(self, tags: Sequence[str]) -> bool:
        """True if the snapshot carries every one of the given tags."""
        return set(tags).issubset(self.tags)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Snapshot":
        """
        Decode a snapshot object.

        Raises:
            InvalidSnapshotError: If the ID is missing or the time is zero or invalid
        """
        snapshot_id = str(data.get("id") or "")
        if not snapshot_id:
            raise InvalidSnapshotError("Snapshot without id in engine output", details={"snapshot": data})

        raw_time = data.get("time")
        try:
            moment = parse_engine_time(str(raw_time)) if raw_time else None
        except ValueError:
            moment = None
        if moment is None or _unix_ms(moment) <= 0:
            raise InvalidSnapshotError(
                f"Snapshot {snapshot_id} has an invalid timestamp: {raw_time!r}",
                details={"snapshot_id": snapshot_id, "time": raw_time},
            )

        return cls(
            id=snapshot_id,
            time=moment,
            short_id=str(data.get("short_id") or snapshot_id[:8]),
            tree=str(data.get("tree") or ""),
            parent=str(data.get("parent") or ""),
            hostname=str(data.get("hostname") or ""),
            username=str(data.get("username") or ""),
            paths=tuple(str(p) for p in data.get("paths") or ()),
            tags=tuple(str(t) for t in data.get("tags") or ()),
        )


def parse_snapshot_list(lines: Sequence[str]) -> List[Snapshot]:
    """
    Decode the output of `restic snapshots --json`.

    The engine prints one JSON array; surrounding plain-text lines are
    ignored. Order follows the engine's output.

    Raises:
        ParseIntegrityError: If no JSON array was found
        InvalidSnapshotError: If any snapshot is invalid
    """
    for line in lines:
        text = line.strip()
        if not text.startswith("["):
            continue
        try:
            items = json.loads(text)
        except ValueError:
            continue
        if not isinstance(items, list):
            continue
        return [Snapshot.from_json(item) for item in items if isinstance(item, dict)]

    raise ParseIntegrityError(
        "restic snapshots produced no JSON snapshot list",
        details={"lines": len(lines)},
    )


@dataclass(frozen=True)
class LsEntry:
    """A file system node inside a snapshot."""

    name: str
    type: str
    path: str
    size: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    mtime: datetime | None = None

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "LsEntry":
        raw_mtime = data.get("mtime")
        try:
            mtime = parse_engine_time(str(raw_mtime)) if raw_mtime else None
        except ValueError:
            mtime = None
        return cls(
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            path=str(data.get("path") or ""),
            size=int(data.get("size") or 0),
            mode=int(data.get("mode") or 0),
            uid=int(data.get("uid") or 0),
            gid=int(data.get("gid") or 0),
            mtime=mtime,
        )


def _struct_type(data: Dict[str, Any]) -> str:
    # Older restic releases use struct_type, newer ones message_type
    return str(data.get("struct_type") or data.get("message_type") or "")


def parse_ls_output(lines: Sequence[str]) -> Tuple[Snapshot, List[LsEntry]]:
    """
    Decode the output of `restic ls --json`.

    The first object describes the snapshot, every following node object is
    an entry. Plain-text lines are ignored.

    Raises:
        ParseIntegrityError: If the snapshot header is missing
    """
    snapshot: Snapshot | None = None
    entries: List[LsEntry] = []

    for line in lines:
        data = decode_json_line(line)
        if data is None:
            continue
        kind = _struct_type(data)
        if kind == "snapshot" or (not kind and snapshot is None and "tree" in data):
            snapshot = Snapshot.from_json(data)
        elif kind == "node":
            entries.append(LsEntry.from_json(data))

    if snapshot is None:
        raise ParseIntegrityError(
            "restic ls produced no snapshot header",
            details={"lines": len(lines), "entries": len(entries)},
        )
    return snapshot, entries


@dataclass(frozen=True)
class RepoStats:
    """Repository statistics as reported by `restic stats --json`."""

    total_size: int
    total_file_count: int
    snapshots_count: int
    total_blob_count: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RepoStats":
        known = {"total_size", "total_file_count", "snapshots_count", "total_blob_count"}
        return cls(
            total_size=int(data.get("total_size") or 0),
            total_file_count=int(data.get("total_file_count") or 0),
            snapshots_count=int(data.get("snapshots_count") or 0),
            total_blob_count=int(data.get("total_blob_count") or 0),
            extra={k: v for k, v in data.items() if k not in known},
        )


def parse_stats(lines: Sequence[str]) -> RepoStats:
    """
    Decode the output of `restic stats --json`.

    Raises:
        ParseIntegrityError: If no JSON object was found
    """
    for line in lines:
        data = decode_json_line(line)
        if data is not None:
            return RepoStats.from_json(data)
    raise ParseIntegrityError("restic stats produced no JSON output", details={"lines": len(lines)})
