# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Retention - Deterministic keep/remove partitioning.

select_retained() is a pure function: given the same snapshots in the same
listing order and the same policy, it always returns the same partition.
Snapshots are ordered newest first with a stable sort, so snapshots with
identical timestamps keep their listing order.

Rules follow restic's forget semantics:
- keep_last: the N most recent snapshots
- keep_hourly/daily/weekly/monthly/yearly: the newest snapshot of each of
  the N most recent distinct periods; -1 means every period
- keep_within: every snapshot within the duration before the newest one
- keep_tags: every snapshot carrying at least one of the tags

A snapshot is kept if any rule keeps it. A policy without any rule keeps
everything.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Sequence, Tuple

from resticorch.exceptions import ConfigurationError
from resticorch.models import Snapshot


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Declarative retention rules. Zero (or None / empty) means "no rule".
    """

    keep_last: int = 0
    keep_hourly: int = 0
    keep_daily: int = 0
    keep_weekly: int = 0
    keep_monthly: int = 0
    keep_yearly: int = 0
    keep_within: timedelta | None = None
    keep_tags: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate policy after creation."""
        errors: List[str] = []

        for name in ("keep_last", "keep_hourly", "keep_daily", "keep_weekly", "keep_monthly", "keep_yearly"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < -1:
                errors.append(f"{name} must be an integer >= -1, got {value!r}")

        if self.keep_within is not None and self.keep_within < timedelta(0):
            errors.append(f"keep_within must not be negative, got {self.keep_within}")

        if not isinstance(self.keep_tags, tuple):
            object.__setattr__(self, "keep_tags", tuple(self.keep_tags))

        if errors:
            raise ConfigurationError(
                "Retention policy validation failed",
                details={"errors": errors},
            )

    @property
    def is_empty(self) -> bool:
        return (
            not any(
                (
                    self.keep_last,
                    self.keep_hourly,
                    self.keep_daily,
                    self.keep_weekly,
                    self.keep_monthly,
                    self.keep_yearly,
                )
            )
            and not self.keep_within
            and not self.keep_tags
        )


@dataclass
class RetentionResult:
    """Partition of a snapshot set. Both lists are ordered newest first."""

    keep: List[Snapshot] = field(default_factory=list)
    remove: List[Snapshot] = field(default_factory=list)
    # Snapshot ID -> rules that kept it
    reasons: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def remove_ids(self) -> List[str]:
        return [s.id for s in self.remove]


BucketKey = Callable[[Snapshot, int], Any]

# Each snapshot is its own bucket for keep_last
_BUCKETS: Tuple[Tuple[str, str, BucketKey], ...] = (
    ("last", "keep_last", lambda s, i: i),
    ("hourly", "keep_hourly", lambda s, i: (s.time.year, s.time.month, s.time.day, s.time.hour)),
    ("daily", "keep_daily", lambda s, i: (s.time.year, s.time.month, s.time.day)),
    ("weekly", "keep_weekly", lambda s, i: s.time.isocalendar()[:2]),
    ("monthly", "keep_monthly", lambda s, i: (s.time.year, s.time.month)),
    ("yearly", "keep_yearly", lambda s, i: s.time.year),
)


def sort_newest_first(snapshots: Sequence[Snapshot]) -> List[Snapshot]:
    """Order snapshots newest first; equal timestamps keep listing order."""
    # sorted() is stable even with reverse=True
    return sorted(snapshots, key=lambda s: s.time, reverse=True)


def _apply_bucket_rule(ordered: List[Snapshot], count: int, key: BucketKey) -> List[int]:
    """Indexes of the newest snapshot in each of the first `count` buckets."""
    kept: List[int] = []
    remaining = count
    last: Any = object()
    for index, snapshot in enumerate(ordered):
        if remaining == 0:
            break
        bucket = key(snapshot, index)
        if bucket != last:
            kept.append(index)
            last = bucket
            if remaining > 0:
                remaining -= 1
    return kept


def select_retained(snapshots: Sequence[Snapshot], policy: RetentionPolicy) -> RetentionResult:
    """
    Partition snapshots into keep and remove sets.

    Every input snapshot appears in exactly one of the two lists.

    Args:
        snapshots: Snapshots in listing order
        policy: Retention rules

    Returns:
        RetentionResult with keep and remove ordered newest first
    """
    ordered = sort_newest_first(snapshots)
    reasons: List[List[str]] = [[] for _ in ordered]

    if policy.is_empty:
        for r in reasons:
            r.append("no policy")
    else:
        for reason, attr, key in _BUCKETS:
            count = getattr(policy, attr)
            if count == 0:
                continue
            for index in _apply_bucket_rule(ordered, count, key):
                reasons[index].append(reason)

        if policy.keep_within and ordered:
            newest = ordered[0].time
            for index, snapshot in enumerate(ordered):
                if newest - snapshot.time <= policy.keep_within:
                    reasons[index].append("within")

        if policy.keep_tags:
            wanted = set(policy.keep_tags)
            for index, snapshot in enumerate(ordered):
                if wanted.intersection(snapshot.tags):
                    reasons[index].append("tag")

    result = RetentionResult()
    for snapshot, why in zip(ordered, reasons):
        if why:
            result.keep.append(snapshot)
            result.reasons[snapshot.id] = why
        else:
            result.remove.append(snapshot)
    return result
