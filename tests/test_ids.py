"""
Tests for version id generation and parsing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from keepsake import ids
from keepsake.ids import format_id, generate_id, is_valid_id, new_version_id, parse_id


@pytest.fixture(autouse=True)
def reset_last_issued(monkeypatch):
    monkeypatch.setattr(ids, "_last_issued", None)


class TestFormat:
    """Id layout."""

    def test_layout(self):
        ts = datetime(2024, 12, 11, 10, 30, 0, 123456, tzinfo=timezone.utc)
        assert format_id(ts, "a1b2") == "2024-12-11T10-30-00.123456Z-a1b2"

    def test_random_suffix(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        vid = format_id(ts)
        suffix = vid.rsplit("-", 1)[1]
        assert len(suffix) == ids.SUFFIX_LENGTH
        assert suffix.isalnum() and suffix == suffix.lower()

    def test_converts_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        ts = datetime(2024, 6, 1, 12, 0, 0, tzinfo=plus_two)
        assert format_id(ts, "zzzz").startswith("2024-06-01T10-00-00.000000Z")

    def test_no_colons(self):
        """Ids are used as filenames."""
        assert ":" not in generate_id()


class TestParse:
    """Recovering timestamps from ids."""

    def test_round_trip(self):
        ts = datetime(2025, 3, 4, 5, 6, 7, 890123, tzinfo=timezone.utc)
        assert parse_id(format_id(ts)) == ts

    def test_millisecond_id(self):
        parsed = parse_id("2024-12-11T10-30-00.123Z-abcd")
        assert parsed == datetime(2024, 12, 11, 10, 30, 0, 123000, tzinfo=timezone.utc)

    def test_id_without_suffix(self):
        parsed = parse_id("2024-12-11T10-30-00.123Z")
        assert parsed is not None
        assert parsed.tzinfo is not None

    @pytest.mark.parametrize("bad", [
        "",
        "notes",
        "2024-12-11T10:30:00.123Z-abcd",
        "2024-13-11T10-30-00.123Z-abcd",
        "2024-12-11T10-30-00.123Z-ABCD",
        "2024-12-11T10-30-00.1234Z-abcd",
        "../2024-12-11T10-30-00.123Z-abcd",
        "2024-12-11T10-30-00.123Z-abcd.md",
    ])
    def test_rejects_malformed(self, bad):
        assert parse_id(bad) is None
        assert not is_valid_id(bad)

    def test_rejects_non_string(self):
        assert parse_id(None) is None


class TestMonotonic:
    """Ids from one process strictly increase."""

    def test_many_ids_sorted_and_unique(self):
        generated = [generate_id() for _ in range(500)]
        assert len(set(generated)) == len(generated)
        assert generated == sorted(generated)

    def test_same_instant_bumps(self):
        now = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        first, ts1 = new_version_id(now)
        second, ts2 = new_version_id(now)
        assert ts2 == ts1 + timedelta(microseconds=1)
        assert second > first

    def test_clock_step_backwards(self):
        now = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        _, ts1 = new_version_id(now)
        _, ts2 = new_version_id(now - timedelta(seconds=5))
        assert ts2 > ts1

    def test_timestamp_matches_id(self):
        vid, ts = new_version_id()
        assert parse_id(vid) == ts
