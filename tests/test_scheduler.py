"""Tests for the window scheduler."""

import logging

import pytest

from authenticator.otp_core import generate
from authenticator.scheduler import (
    dominant_period,
    entries_due,
    next_boundary,
    next_refresh,
    regenerate,
    seconds_until_next_boundary,
    window_start,
)
from conftest import make_entry


class TestBoundaries:
    """Tests for the boundary arithmetic."""

    @pytest.mark.parametrize("now,start,boundary,left", [
        (0, 0, 30, 30),
        (29, 0, 30, 1),
        (30, 30, 60, 30),
        (59, 30, 60, 1),
        (61, 60, 90, 29),
        (-1, -30, 0, 1),
    ])
    def test_thirty_second_windows(self, now: int, start: int, boundary: int, left: int) -> None:
        """Test epoch-aligned 30s windows."""
        assert window_start(now, 30) == start
        assert next_boundary(now, 30) == boundary
        assert seconds_until_next_boundary(now, 30) == left

    def test_fractional_now(self) -> None:
        """Test the countdown keeps the sub-second part."""
        assert seconds_until_next_boundary(59.25, 30) == pytest.approx(0.75)
        assert window_start(59.25, 30) == 30

    def test_custom_t0(self) -> None:
        """Test boundaries anchored on a non-zero t0."""
        assert next_boundary(61, 30, t0=10) == 70


class TestDominantPeriod:
    """Tests for dominant_period()."""

    def test_empty_vault_defaults_to_thirty(self) -> None:
        assert dominant_period(()) == 30

    def test_most_common_wins(self) -> None:
        vault = (make_entry(period=60), make_entry(period=30), make_entry(period=60))
        assert dominant_period(vault) == 60

    def test_tie_prefers_smaller(self) -> None:
        vault = (make_entry(period=60), make_entry(period=30))
        assert dominant_period(vault) == 30

    def test_invalid_periods_are_ignored(self) -> None:
        vault = (make_entry(period=0), make_entry(period=0), make_entry(period=45))
        assert dominant_period(vault) == 45


class TestNextRefresh:
    """Tests for next_refresh() and entries_due()."""

    def test_single_period(self) -> None:
        """Test all entries sharing 30s roll over together."""
        vault = (make_entry(), make_entry(issuer="GitLab"))
        wake_at, due = next_refresh(vault, 61)

        assert wake_at == 90
        assert due == {30}
        assert entries_due(vault, due) == list(vault)

    def test_mixed_periods_roll_over_independently(self) -> None:
        """Test a 60s entry is only due on its own boundary."""
        short = make_entry(issuer="Short")
        other = make_entry(issuer="Other")
        slow = make_entry(issuer="Slow", period=60)
        vault = (short, other, slow)

        wake_at, due = next_refresh(vault, 61)
        assert (wake_at, due) == (90, frozenset({30}))
        assert entries_due(vault, due) == list(vault)

        wake_at, due = next_refresh(vault, 90)
        assert (wake_at, due) == (120, frozenset({30, 60}))

    def test_non_dominant_period_alone(self) -> None:
        """Test only the entries of a non-dominant period are due at its boundary."""
        a = make_entry(issuer="A", period=30)
        b = make_entry(issuer="B", period=30)
        c = make_entry(issuer="C", period=20)
        vault = (a, b, c)

        wake_at, due = next_refresh(vault, 61)
        assert (wake_at, due) == (80, frozenset({20}))
        assert entries_due(vault, due) == [c]

    def test_empty_vault_still_counts_down(self) -> None:
        """Test the default countdown with no entries."""
        assert next_refresh((), 10) == (30, frozenset({30}))


class TestRegenerate:
    """Tests for the regeneration pass."""

    def test_one_result_per_entry_in_order(self) -> None:
        """Test results follow vault order and match generate()."""
        vault = (make_entry(issuer="A"), make_entry(issuer="B", digits=8))
        results = regenerate(vault, 59)

        assert [entry.issuer for entry, _ in results] == ["A", "B"]
        assert results[0][1] == generate(vault[0], 59)
        assert results[1][1].value == "94287082"

    def test_malformed_entry_is_skipped(self, caplog) -> None:
        """Test a bad entry yields None without stopping the pass."""
        vault = (make_entry(issuer="Bad", digits=4), make_entry(issuer="Good"))
        with caplog.at_level(logging.WARNING, logger="authenticator.scheduler"):
            results = regenerate(vault, 59)

        assert results[0][1] is None
        assert results[1][1].value == "287082"
        assert "Skipping Bad:me" in caplog.text
