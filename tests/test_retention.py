# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention Tests for resticorch.

These tests verify the retention guarantees:
1. Partition - every snapshot is kept or removed, exactly once
2. Keep last N - the N most recent snapshots survive, newest first
3. Determinism - identical timestamps resolve by listing order
4. Calendar buckets, keep_within and keep_tags follow restic semantics
"""

import random
from datetime import datetime, timedelta, UTC

import pytest

from resticorch.exceptions import ConfigurationError
from resticorch.retention import RetentionPolicy, select_retained, sort_newest_first


def _ids(snapshots):
    return [s.id for s in snapshots]


# ============================================================================
# Test 1: PARTITION
# ============================================================================

@pytest.mark.parametrize(
    "policy",
    [
        RetentionPolicy(keep_last=3),
        RetentionPolicy(keep_last=0),
        RetentionPolicy(keep_last=50),
        RetentionPolicy(keep_hourly=2, keep_daily=1),
        RetentionPolicy(keep_within=timedelta(hours=4)),
        RetentionPolicy(keep_tags=("pinned",)),
        RetentionPolicy(keep_last=-1),
    ],
)
def test_partition_is_exhaustive_and_disjoint(hourly_snapshots, policy):
    """Keep and remove together contain every input exactly once."""
    result = select_retained(hourly_snapshots, policy)

    assert len(result.keep) + len(result.remove) == len(hourly_snapshots)
    assert not set(_ids(result.keep)) & set(_ids(result.remove))
    assert set(_ids(result.keep)) | set(_ids(result.remove)) == set(_ids(hourly_snapshots))


def test_empty_input_yields_empty_result():
    result = select_retained([], RetentionPolicy(keep_last=3))

    assert result.keep == []
    assert result.remove == []


def test_empty_policy_keeps_everything(hourly_snapshots):
    """A policy with no rules never removes anything."""
    result = select_retained(hourly_snapshots, RetentionPolicy())

    assert len(result.keep) == 10
    assert result.remove == []
    assert RetentionPolicy().is_empty


# ============================================================================
# Test 2: KEEP LAST N
# ============================================================================

def test_keep_last_retains_most_recent_newest_first(hourly_snapshots):
    result = select_retained(hourly_snapshots, RetentionPolicy(keep_last=3))

    assert _ids(result.keep) == ["snap09", "snap08", "snap07"]
    assert _ids(result.remove) == [f"snap{i:02d}" for i in range(6, -1, -1)]
    assert result.remove_ids == _ids(result.remove)
    assert result.reasons["snap09"] == ["last"]


def test_keep_last_larger_than_input_keeps_all(hourly_snapshots):
    result = select_retained(hourly_snapshots, RetentionPolicy(keep_last=25))

    assert len(result.keep) == 10
    assert result.remove == []


@pytest.mark.parametrize("n", [1, 2, 5, 9, 10])
def test_keep_last_counts(hourly_snapshots, n):
    """Exactly min(N, total) snapshots are kept."""
    result = select_retained(hourly_snapshots, RetentionPolicy(keep_last=n))

    assert len(result.keep) == min(n, len(hourly_snapshots))


def test_input_order_does_not_matter(hourly_snapshots):
    """Listing order only matters for ties."""
    shuffled = list(hourly_snapshots)
    random.Random(7).shuffle(shuffled)

    expected = select_retained(hourly_snapshots, RetentionPolicy(keep_last=4))
    actual = select_retained(shuffled, RetentionPolicy(keep_last=4))

    assert _ids(actual.keep) == _ids(expected.keep)
    assert _ids(actual.remove) == _ids(expected.remove)


# ============================================================================
# Test 3: DETERMINISM
# ============================================================================

def test_identical_timestamps_resolve_by_listing_order(snapshot_factory):
    """Ties keep listing order, so results are reproducible."""
    moment = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    snapshots = [snapshot_factory(f"tie{i}", moment) for i in range(4)]

    first = select_retained(snapshots, RetentionPolicy(keep_last=2))
    second = select_retained(list(snapshots), RetentionPolicy(keep_last=2))

    assert _ids(first.keep) == ["tie0", "tie1"]
    assert _ids(first.remove) == ["tie2", "tie3"]
    assert _ids(second.keep) == _ids(first.keep)


def test_sort_newest_first_is_stable(snapshot_factory):
    moment = datetime(2026, 1, 1, tzinfo=UTC)
    older = snapshot_factory("older", moment - timedelta(days=1))
    a = snapshot_factory("a", moment)
    b = snapshot_factory("b", moment)

    assert _ids(sort_newest_first([older, a, b])) == ["a", "b", "older"]
    assert _ids(sort_newest_first([b, older, a])) == ["b", "a", "older"]


# ============================================================================
# Test 4: BUCKET RULES
# ============================================================================

def test_keep_daily_keeps_newest_per_day(snapshot_factory):
    base = datetime(2026, 5, 1, tzinfo=UTC)
    snapshots = [
        snapshot_factory("d1-morning", base + timedelta(hours=8)),
        snapshot_factory("d1-evening", base + timedelta(hours=20)),
        snapshot_factory("d2-morning", base + timedelta(days=1, hours=8)),
        snapshot_factory("d2-evening", base + timedelta(days=1, hours=20)),
        snapshot_factory("d3-noon", base + timedelta(days=2, hours=12)),
    ]

    result = select_retained(snapshots, RetentionPolicy(keep_daily=2))

    assert _ids(result.keep) == ["d3-noon", "d2-evening"]
    assert result.reasons["d2-evening"] == ["daily"]


def test_keep_hourly_unlimited_keeps_one_per_hour(hourly_snapshots, snapshot_factory):
    extra = snapshot_factory("snap09-late", hourly_snapshots[-1].time + timedelta(minutes=30))

    result = select_retained(hourly_snapshots + [extra], RetentionPolicy(keep_hourly=-1))

    assert len(result.keep) == 10
    assert _ids(result.remove) == ["snap09"]


def test_keep_weekly_monthly_yearly(snapshot_factory):
    snapshots = [
        snapshot_factory("2024-06", datetime(2024, 6, 15, tzinfo=UTC)),
        snapshot_factory("2025-01", datetime(2025, 1, 10, tzinfo=UTC)),
        snapshot_factory("2025-02a", datetime(2025, 2, 3, tzinfo=UTC)),
        snapshot_factory("2025-02b", datetime(2025, 2, 4, tzinfo=UTC)),
    ]

    weekly = select_retained(snapshots, RetentionPolicy(keep_weekly=2))
    monthly = select_retained(snapshots, RetentionPolicy(keep_monthly=2))
    yearly = select_retained(snapshots, RetentionPolicy(keep_yearly=5))

    # 2025-02-03 and 2025-02-04 share ISO week 6
    assert _ids(weekly.keep) == ["2025-02b", "2025-01"]
    assert _ids(monthly.keep) == ["2025-02b", "2025-01"]
    assert _ids(yearly.keep) == ["2025-02b", "2024-06"]


def test_rules_are_combined(hourly_snapshots):
    """A snapshot is kept when any rule keeps it; reasons accumulate."""
    result = select_retained(
        hourly_snapshots,
        RetentionPolicy(keep_last=1, keep_daily=1, keep_within=timedelta(hours=2)),
    )

    assert _ids(result.keep) == ["snap09", "snap08", "snap07"]
    assert result.reasons["snap09"] == ["last", "daily", "within"]
    assert result.reasons["snap07"] == ["within"]


def test_keep_tags_keeps_any_matching_snapshot(hourly_snapshots, snapshot_factory):
    pinned = snapshot_factory("pinned", hourly_snapshots[0].time - timedelta(days=30), tags=("release", "pinned"))

    result = select_retained(hourly_snapshots + [pinned], RetentionPolicy(keep_last=1, keep_tags=("pinned", "other")))

    assert _ids(result.keep) == ["snap09", "pinned"]
    assert result.reasons["pinned"] == ["tag"]


# ============================================================================
# Test 5: POLICY VALIDATION
# ============================================================================

def test_negative_counts_rejected():
    with pytest.raises(ConfigurationError) as excinfo:
        RetentionPolicy(keep_last=-2, keep_daily=-5)

    assert len(excinfo.value.details["errors"]) == 2


def test_negative_keep_within_rejected():
    with pytest.raises(ConfigurationError):
        RetentionPolicy(keep_within=timedelta(hours=-1))


def test_keep_tags_list_is_frozen():
    policy = RetentionPolicy(keep_tags=["a", "b"])

    assert policy.keep_tags == ("a", "b")
    assert not policy.is_empty
