"""
Tests for the availability engine and bulk feasibility checks.
"""

import pytest

from conftest import FACILITY_ID, at
from utils.exceptions import ConfigurationMissingError


class TestCheckAvailability:
    """Tests for check_availability."""

    def test_all_units_free(self, app, rowers):
        from models.equipment_availability import check_availability

        result = check_availability('rower', FACILITY_ID, (at(10), at(11)))

        assert result['total_count'] == 2
        assert result['available_count'] == 2
        assert result['conflicts'] == []
        assert result['can_accommodate'] is True

    def test_touching_reservation_is_not_a_conflict(self, app, rowers):
        """Existing [11:00,12:00) does not block [10:00,11:00)."""
        from models.equipment_availability import check_availability
        from models.equipment_reservation import reserve_equipment

        reserve_equipment([rowers[0]], 'session-1', (at(11), at(12)), 'coach')
        # The reserved unit is in Reserved status, so only conflicts matter here
        result = check_availability('rower', FACILITY_ID, (at(10), at(11)))

        assert result['conflicts'] == []

    def test_overlapping_reservation_is_a_conflict(self, app, rowers):
        """Existing [10:59,11:30) blocks [10:00,11:00)."""
        from models.equipment_availability import check_availability
        from models.equipment_reservation import reserve_equipment

        reserve_equipment([rowers[0]], 'session-1', (at(10, 59), at(11, 30)), 'coach')
        result = check_availability('rower', FACILITY_ID, (at(10), at(11)))

        assert [c['equipment_unit_id'] for c in result['conflicts']] == [rowers[0]]
        assert [u['id'] for u in result['available_units']] == [rowers[1]]

    def test_never_returns_serviced_units(self, app, rowers):
        """Maintenance and out-of-order units are never offered."""
        from models.equipment import set_equipment_status
        from models.equipment_availability import check_availability

        set_equipment_status(rowers[0], 'maintenance', 'tech')
        set_equipment_status(rowers[1], 'out_of_order', 'tech')

        result = check_availability('rower', FACILITY_ID, (at(10), at(11)))
        assert result['available_units'] == []
        assert result['can_accommodate'] is False

    def test_offer_capped_by_total_count(self, app, make_config, make_unit):
        """More units than configured never raises the offer above total_count."""
        from models.equipment_availability import check_availability

        make_config('skierg', total_count=1)
        make_unit('skierg')
        make_unit('skierg')

        result = check_availability('skierg', FACILITY_ID, (at(10), at(11)))
        assert result['available_count'] == 1
        assert result['capacity_remaining'] == 1

    def test_rule_violation_reported_not_filtered(self, app, rowers):
        """Units stay listed when the window breaks a booking rule."""
        from models.equipment_availability import check_availability

        result = check_availability('rower', FACILITY_ID, (at(9), at(12)))

        assert result['available_count'] == 2
        assert [v['rule'] for v in result['constraint_violations']] == ['max_session_duration']
        assert result['can_accommodate'] is False

    def test_missing_config(self, app, make_unit):
        from models.equipment_availability import check_availability

        make_unit('wattbike')
        with pytest.raises(ConfigurationMissingError):
            check_availability('wattbike', FACILITY_ID, (at(10), at(11)))


class TestCheckBulkAvailability:
    """Tests for check_bulk_availability."""

    def test_shortfall_when_one_unit_booked(self, app, rowers):
        """Two rowers, one booked [09:00,10:00): two rowers for [09:30,10:30) fall one short."""
        from models.equipment_reservation import check_bulk_availability, reserve_equipment

        reserve_equipment([rowers[0]], 'session-1', (at(9), at(10)), 'coach')

        result = check_bulk_availability({'rower': 2}, FACILITY_ID, (at(9, 30), at(10, 30)))

        assert result['can_accommodate'] is False
        assert result['shortfalls'] == [{
            'equipment_type': 'rower', 'requested': 2, 'available': 1, 'shortfall': 1,
        }]

    def test_multiple_types(self, app, rowers, make_config, make_unit):
        from models.equipment_reservation import check_bulk_availability

        make_config('skierg', total_count=1)
        make_unit('skierg')

        result = check_bulk_availability(
            [{'equipment_type': 'rower', 'count': 2}, {'equipment_type': 'skierg', 'count': 1}],
            FACILITY_ID, (at(10), at(11))
        )

        assert result['can_accommodate'] is True
        assert result['per_type']['rower']['available'] == 2
        assert result['per_type']['skierg']['available'] == 1
        assert result['shortfalls'] == []

    def test_repeated_type_is_merged(self, app, rowers):
        from models.equipment_reservation import check_bulk_availability

        result = check_bulk_availability(
            [{'equipment_type': 'rower', 'count': 1}, {'equipment_type': 'rower', 'count': 2}],
            FACILITY_ID, (at(10), at(11))
        )

        assert result['per_type']['rower']['requested'] == 3
        assert result['shortfalls'][0]['shortfall'] == 1
