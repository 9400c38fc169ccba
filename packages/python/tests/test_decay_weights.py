from datetime import datetime, timedelta, timezone

import pytest

from moodreel_core.types import MediaType, WatchHistoryEntry
from moodreel_mood.signals.decay import decay_for_age, time_decay
from moodreel_mood.signals.weights import entry_weight, rating_weight

NOW = datetime(2026, 3, 15, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "days, expected",
    [(0, 1.0), (30, 1.0), (365, 0.5), (400, 0.5), (197.5, 0.75)],
)
def test_time_decay_anchor_points(days, expected):
    assert time_decay(NOW - timedelta(days=days), NOW) == pytest.approx(expected)


def test_time_decay_is_non_increasing():
    ages = [0, 1, 29, 30, 31, 90, 180, 364, 365, 366, 1000]
    values = [decay_for_age(a) for a in ages]
    assert all(b <= a for a, b in zip(values, values[1:]))


def test_future_timestamps_count_as_fresh():
    assert time_decay(NOW + timedelta(days=3), NOW) == 1.0


@pytest.mark.parametrize(
    "rating, expected",
    [(1, 0.2), (2.5, 0.5), (5, 1.0), (None, 0.5), (0, 0.5), (7, 0.5), ("bad", 0.5)],
)
def test_rating_weight(rating, expected):
    assert rating_weight(rating) == pytest.approx(expected)


def test_entry_weight_combines_rating_and_decay():
    e = WatchHistoryEntry(
        media_type=MediaType.MOVIE,
        media_id=1,
        title="X",
        rating=4,
        watched_at=NOW - timedelta(days=400),
    )
    assert entry_weight(e, NOW) == pytest.approx(0.8 * 0.5)
