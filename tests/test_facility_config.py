"""
Tests for facility equipment configs and booking-window rules.
"""

import pytest
from datetime import datetime

from conftest import FACILITY_ID, OPEN_ALL_WEEK, at
from models.time_window import TimeWindow
from utils.exceptions import ConfigurationMissingError, NotFoundError


class TestFacilityConfigCrud:
    """Tests for config create/read/update/delete."""

    def test_create_and_get(self, app, make_config):
        """JSON fields are decoded on read."""
        from models.facility_config import get_facility_config

        make_config('skierg', total_count=4, restrictions={'min_age': 16})
        config = get_facility_config(FACILITY_ID, 'skierg')

        assert config['total_count'] == 4
        assert config['operating_hours']['monday'] == ['06:00', '22:00']
        assert config['restrictions'] == {'min_age': 16}

    def test_duplicate_pair_rejected(self, app, make_config):
        make_config('skierg')
        with pytest.raises(ValueError):
            make_config('skierg')

    def test_invalid_values_rejected(self, app, make_config):
        """Negative counts and malformed hours are rejected."""
        with pytest.raises(ValueError):
            make_config('rower', total_count=-1)
        with pytest.raises(ValueError):
            make_config('rower', operating_hours={'monday': ['25:00', '26:00']})

    def test_require_missing_config(self, app):
        from models.facility_config import require_facility_config

        with pytest.raises(ConfigurationMissingError) as exc_info:
            require_facility_config(FACILITY_ID, 'treadmill')
        assert exc_info.value.equipment_type == 'treadmill'
        assert exc_info.value.facility_id == FACILITY_ID

    def test_update_config(self, app, make_config):
        from models.facility_config import update_facility_config

        make_config('airbike', total_count=2)
        config = update_facility_config(FACILITY_ID, 'airbike', total_count=5, max_session_minutes=45)

        assert config['total_count'] == 5
        assert config['max_session_minutes'] == 45

    def test_list_and_delete(self, app, make_config):
        from models.facility_config import delete_facility_config, get_facility_configs

        make_config('rower')
        make_config('airbike')
        assert [c['equipment_type'] for c in get_facility_configs(FACILITY_ID)] == ['airbike', 'rower']

        delete_facility_config(FACILITY_ID, 'rower')
        assert [c['equipment_type'] for c in get_facility_configs(FACILITY_ID)] == ['airbike']

        with pytest.raises(NotFoundError):
            delete_facility_config(FACILITY_ID, 'rower')


class TestWindowRules:
    """Tests for evaluate_window_rules."""

    def _config(self, **overrides):
        config = {
            'equipment_type': 'rower',
            'operating_hours': OPEN_ALL_WEEK,
            'max_session_minutes': 90,
            'min_advance_minutes': None,
            'max_advance_days': None,
        }
        config.update(overrides)
        return config

    def test_window_inside_hours_passes(self, app):
        from models.facility_config import evaluate_window_rules

        assert evaluate_window_rules(self._config(), TimeWindow(at(6), at(7))) == []
        assert evaluate_window_rules(self._config(), TimeWindow(at(21), at(22))) == []

    def test_outside_operating_hours(self, app):
        from models.facility_config import evaluate_window_rules

        violations = evaluate_window_rules(self._config(), TimeWindow(at(5, 30), at(6, 30)))
        assert [v['rule'] for v in violations] == ['operating_hours']

    def test_closed_day(self, app):
        """A weekday missing from the mapping is closed."""
        from models.facility_config import evaluate_window_rules

        config = self._config(operating_hours={'tuesday': ['06:00', '22:00']})
        violations = evaluate_window_rules(config, TimeWindow(at(10), at(11)))
        assert violations[0]['rule'] == 'operating_hours'
        assert 'monday' in violations[0]['message']

    def test_no_hours_means_no_limit(self, app):
        from models.facility_config import evaluate_window_rules

        config = self._config(operating_hours=None)
        assert evaluate_window_rules(config, TimeWindow(at(2), at(3))) == []

    def test_max_session_duration(self, app):
        from models.facility_config import evaluate_window_rules

        violations = evaluate_window_rules(self._config(), TimeWindow(at(10), at(12)))
        assert [v['rule'] for v in violations] == ['max_session_duration']

    def test_advance_booking_bounds(self, app):
        """Too close and too far ahead are both reported."""
        from models.facility_config import evaluate_window_rules

        config = self._config(min_advance_minutes=60, max_advance_days=7)
        now = at(9, 30)

        too_soon = evaluate_window_rules(config, TimeWindow(at(10), at(11)), now=now)
        assert [v['rule'] for v in too_soon] == ['min_advance']

        far = datetime(2030, 1, 21, 10, 0)
        too_far = evaluate_window_rules(
            config, TimeWindow(far, far.replace(hour=11)), now=now
        )
        assert [v['rule'] for v in too_far] == ['max_advance']

        assert evaluate_window_rules(config, TimeWindow(at(11), at(12)), now=now) == []
