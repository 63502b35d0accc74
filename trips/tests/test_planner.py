import json
from dataclasses import replace
from datetime import datetime, timezone as dt_timezone
from unittest import mock

import pytest

from trips.exceptions import GeocodingError, IncompleteSimulation, InvalidRoute, TripValidationError
from trips.hos_config import HOSConfig
from trips.hos_engine import StopKind
from trips.planner import assemble_trip, default_start_time, plan_trip

from .factories import START, fake_geocoder, fake_router, leg, run_trip


def plan(to_pickup, to_dropoff, cycle_used=0, **kwargs):
    return plan_trip(
        "Chicago, IL",
        "Indianapolis, IN",
        "St. Louis, MO",
        cycle_used,
        start_time=START,
        geocoder=fake_geocoder,
        router=fake_router(to_pickup, to_dropoff),
        **kwargs,
    )


class TestPlanTrip:

    def test_short_trip(self):
        result = plan(leg(100, 1.6), leg(150, 2.4))

        assert [s.type for s in result.stops] == [StopKind.PICKUP, StopKind.DROPOFF]
        assert result.total_distance == 250
        assert result.total_duration == pytest.approx(4 + 2 * 1.0)

    def test_long_trip_adds_rest(self):
        result = plan(leg(0, 0), leg(700, 14.0))

        types = [s.type for s in result.stops]
        assert StopKind.DAILY_REST in types
        assert result.total_duration == pytest.approx(14 + 2 + 0.5 + 10)

    def test_near_cycle_limit_adds_restart(self):
        result = plan(leg(0, 0), leg(150, 3.0), cycle_used=68)

        types = [s.type for s in result.stops]
        assert StopKind.CYCLE_RESET in types
        assert types.index(StopKind.CYCLE_RESET) < types.index(StopKind.DROPOFF)

    def test_total_distance_is_sum_of_legs(self):
        result = plan(leg(123.4567, 2.31), leg(987.6543, 17.9))

        assert result.total_distance == 123.4567 + 987.6543
        assert result.stops[-1].distance_from_start == result.total_distance

    def test_coordinates_run_from_origin_to_destination(self):
        result = plan(leg(0, 0), leg(700, 14.0))

        assert result.coordinates[0] == (41.8781, -87.6298)
        assert result.coordinates[-1] == (38.627, -90.1994)
        # current, pickup, break, rest, dropoff
        assert len(result.coordinates) == 5

    def test_identical_inputs_give_identical_output(self):
        first = plan(leg(900, 16.0), leg(2100, 38.0), cycle_used=40)
        second = plan(leg(900, 16.0), leg(2100, 38.0), cycle_used=40)

        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_response_shape(self):
        data = plan(leg(100, 1.6), leg(150, 2.4)).to_dict()

        assert set(data) >= {"route", "total_distance", "total_duration", "stops", "eld_logs"}
        assert data["route"]["coordinates"][0] == [41.8781, -87.6298]
        assert data["stops"][0] == {
            "type": "PickupHandling",
            "duration": 1.0,
            "distance_from_start": 100.0,
            "location": "Indianapolis, IN",
        }
        assert data["eld_logs"][-1]["remarks"] == "Trip complete"

    def test_uses_given_config(self):
        result = plan(leg(0, 0), leg(150, 3.0), config=HOSConfig(pickup_duration_hours=2.0))
        assert result.stops[0].duration == 2.0
        assert result.total_duration == pytest.approx(2 + 3 + 1)

    def test_default_start_time_is_next_hour(self):
        start = default_start_time()
        assert start.minute == 0 and start.second == 0 and start.microsecond == 0
        assert start.tzinfo is not None

    def test_omitted_start_time_follows_server_clock(self):
        now = datetime(2024, 1, 15, 6, 25, tzinfo=dt_timezone.utc)
        with mock.patch("trips.planner.timezone.now", return_value=now):
            first = plan_trip("Chicago, IL", "Indianapolis, IN", "St. Louis, MO", 0,
                              geocoder=fake_geocoder, router=fake_router(leg(100, 1.6), leg(150, 2.4)))
            second = plan_trip("Chicago, IL", "Indianapolis, IN", "St. Louis, MO", 0,
                               geocoder=fake_geocoder, router=fake_router(leg(100, 1.6), leg(150, 2.4)))

        first_row = first.to_dict()["eld_logs"][0]
        assert (first_row["date"], first_row["time"]) == ("2024-01-15", "07:00")
        assert first.to_dict() == second.to_dict()


class TestValidation:

    @pytest.mark.parametrize("cycle_used", [-0.5, 70.5, float("nan"), "12", None, True])
    def test_bad_cycle_hours(self, cycle_used):
        with pytest.raises(TripValidationError):
            plan(leg(100, 2), leg(100, 2), cycle_used=cycle_used)

    def test_blank_location(self):
        with pytest.raises(TripValidationError):
            plan_trip("  ", "Indianapolis, IN", "St. Louis, MO", 0, geocoder=fake_geocoder)

    def test_validation_happens_before_geocoding(self):
        calls = []

        def geocoder(query):
            calls.append(query)
            return fake_geocoder(query)

        with pytest.raises(TripValidationError):
            plan_trip("Chicago, IL", "Indianapolis, IN", "St. Louis, MO", 71, geocoder=geocoder)
        assert calls == []

    def test_geocoding_failure_propagates(self):
        def geocoder(query):
            raise GeocodingError(f"Could not geocode: {query}")

        with pytest.raises(GeocodingError):
            plan_trip("Nowhere", "Indianapolis, IN", "St. Louis, MO", 0, geocoder=geocoder)

    def test_inconsistent_route_is_fatal(self):
        with pytest.raises(InvalidRoute):
            plan(leg(0, 3.0), leg(100, 2.0))


class TestAssembleTrip:

    def test_incomplete_simulation_is_rejected(self):
        segments, sim = run_trip(leg(100, 2.0), leg(150, 2.0))
        short = replace(sim, distance_covered=sim.distance_covered - 10)

        with pytest.raises(IncompleteSimulation):
            assemble_trip(segments, short, [], [])

    def test_duration_is_wall_clock(self):
        segments, sim = run_trip(leg(0, 0), leg(700, 14.0))
        result = assemble_trip(segments, sim, [], [])

        assert result.total_duration == pytest.approx((sim.end_time - START).total_seconds() / 3600)
