"""
Tests for the half-open TimeWindow value type.
"""

import pytest
from datetime import datetime, timezone

from models.time_window import TimeWindow, as_window, intervals_overlap


def window(start_hm, end_hm):
    return TimeWindow.from_values(f'2030-01-07 {start_hm}', f'2030-01-07 {end_hm}')


class TestOverlap:
    """Tests for the overlap predicate."""

    def test_touching_windows_do_not_overlap(self):
        """[10:00,11:00) and [11:00,12:00) share only a boundary."""
        assert not window('10:00', '11:00').overlaps(window('11:00', '12:00'))
        assert not window('11:00', '12:00').overlaps(window('10:00', '11:00'))

    def test_one_minute_overlap(self):
        """[10:00,11:00) and [10:59,11:30) conflict."""
        assert window('10:00', '11:00').overlaps(window('10:59', '11:30'))

    def test_containment_overlaps(self):
        """A window inside another overlaps it both ways."""
        outer = window('09:00', '12:00')
        inner = window('10:00', '10:30')
        assert outer.overlaps(inner)
        assert inner.overlaps(outer)

    def test_plain_predicate(self):
        """The module-level predicate works on any comparable values."""
        assert intervals_overlap(1, 3, 2, 4) is True
        assert intervals_overlap(1, 2, 2, 3) is False


class TestTimeWindow:
    """Tests for construction and helpers."""

    def test_start_must_precede_end(self):
        """Empty and reversed windows are rejected."""
        with pytest.raises(ValueError):
            window('10:00', '10:00')
        with pytest.raises(ValueError):
            window('11:00', '10:00')

    def test_duration(self):
        w = window('10:00', '11:30')
        assert w.duration_minutes == 90

    def test_contains_is_half_open(self):
        """Start instant is inside, end instant is not."""
        w = window('10:00', '11:00')
        assert w.contains(datetime(2030, 1, 7, 10, 0))
        assert not w.contains(datetime(2030, 1, 7, 11, 0))

    def test_shifted_to_keeps_duration(self):
        w = window('10:00', '11:00').shifted_to(datetime(2030, 1, 7, 14, 30))
        assert w.start == datetime(2030, 1, 7, 14, 30)
        assert w.end == datetime(2030, 1, 7, 15, 30)

    def test_to_db_format(self):
        """Stored strings sort chronologically."""
        assert window('09:05', '10:00').to_db() == ('2030-01-07 09:05:00', '2030-01-07 10:00:00')

    def test_as_window_accepts_pairs_and_dicts(self):
        """Tuples, lists and start/end dicts are all accepted."""
        expected = window('10:00', '11:00')
        assert as_window(('2030-01-07 10:00', '2030-01-07 11:00')) == expected
        assert as_window(['2030-01-07 10:00', '2030-01-07 11:00']) == expected
        assert as_window({'start': '2030-01-07T10:00', 'end': '2030-01-07T11:00'}) == expected
        assert as_window(expected) is expected

    def test_as_window_rejects_garbage(self):
        with pytest.raises(ValueError):
            as_window('2030-01-07 10:00')

    def test_microseconds_dropped_at_construction(self):
        """The window kept in memory matches the one written to the ledger."""
        w = TimeWindow(datetime(2030, 1, 7, 10, 0, 0, 500000), datetime(2030, 1, 7, 11, 0, 0, 900000))
        assert w.start == datetime(2030, 1, 7, 10, 0)
        assert w.end == datetime(2030, 1, 7, 11, 0)
        assert w.to_db() == ('2030-01-07 10:00:00', '2030-01-07 11:00:00')


class TestAwareWindows:
    """Aware datetimes are converted to naive local time in TIMEZONE."""

    def test_direct_construction_converts_to_local_time(self, app):
        """Stockholm is UTC+1 in January."""
        w = TimeWindow(datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc),
                       datetime(2030, 1, 7, 10, 30, tzinfo=timezone.utc))
        assert w.start == datetime(2030, 1, 7, 10, 30)
        assert w.start.tzinfo is None
        assert w.to_db() == ('2030-01-07 10:30:00', '2030-01-07 11:30:00')

    def test_direct_construction_matches_pair_form(self, app):
        start = datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc)
        end = datetime(2030, 1, 7, 10, 30, tzinfo=timezone.utc)
        assert TimeWindow(start, end) == as_window((start, end))

    def test_availability_with_aware_window(self, app, rowers):
        """Aware windows compare against stored naive rows without error."""
        from conftest import at
        from models.equipment_availability import check_availability
        from models.equipment_reservation import reserve_equipment

        reserve_equipment([rowers[0]], 'session-1', (at(10), at(11)), 'coach')

        result = check_availability('rower', 'test-facility', TimeWindow(
            datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc),
            datetime(2030, 1, 7, 10, 30, tzinfo=timezone.utc),
        ))
        assert result['available_count'] == 1
        assert len(result['conflicts']) == 1
