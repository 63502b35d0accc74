"""
Trip planning entry point.

plan_trip() runs the whole pipeline for one request:
geocode -> route -> sequence segments -> HOS simulation -> stops + ELD log
-> TripResult. Nothing is shared between calls.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone

from .eld_generator import generate_eld_logs, summarize_days
from .exceptions import IncompleteSimulation, TripValidationError
from .hos_config import HOSConfig
from .hos_engine import simulate_trip
from .route_service import geocode, get_route_legs
from .sequencer import build_segments
from .stop_inserter import build_stops

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TripResult:
    coordinates: tuple
    total_distance: float
    total_duration: float
    stops: tuple
    eld_logs: tuple
    daily_totals: tuple = ()

    def to_dict(self):
        return {
            "route": {"coordinates": [[lat, lng] for lat, lng in self.coordinates]},
            "total_distance": round(self.total_distance, 1),
            "total_duration": round(self.total_duration, 2),
            "stops": [stop.to_dict() for stop in self.stops],
            "eld_logs": [entry.to_dict() for entry in self.eld_logs],
            "daily_totals": list(self.daily_totals),
        }


def default_start_time() -> datetime:
    """Next whole hour, UTC."""
    now = timezone.now().replace(minute=0, second=0, microsecond=0)
    return now + timedelta(hours=1)


def assemble_trip(segments, simulation, stops, eld_logs, daily_totals=()) -> TripResult:
    """Compose the response; refuses a simulation that stopped short of the route end."""
    total_distance = sum(segment.distance_miles for segment in segments)
    if simulation.distance_covered != total_distance:
        raise IncompleteSimulation(
            f"Simulation covered {simulation.distance_covered} of {total_distance} miles"
        )

    # Waypoints and synthetic stops, in distance order.
    points = []
    mileage = 0.0
    for segment in segments:
        if segment.is_travel:
            points.append((mileage, segment.start.coordinate))
            mileage += segment.distance_miles
            points.append((mileage, segment.end.coordinate))
    points.extend(
        (stop.distance_from_start, stop.coordinate)
        for stop in stops
        if not stop.type.is_handling
    )
    points.sort(key=lambda p: p[0])

    coordinates = []
    for _, coordinate in points:
        if not coordinates or coordinates[-1] != coordinate:
            coordinates.append(coordinate)

    return TripResult(
        coordinates=tuple(coordinates),
        total_distance=total_distance,
        total_duration=simulation.total_duration_hours,
        stops=tuple(stops),
        eld_logs=tuple(eld_logs),
        daily_totals=tuple(daily_totals),
    )


def plan_trip(
    current_location: str,
    pickup_location: str,
    dropoff_location: str,
    current_cycle_used: float,
    start_time: Optional[datetime] = None,
    config: Optional[HOSConfig] = None,
    geocoder=None,
    router=None,
) -> TripResult:
    """
    Plan an HOS-compliant trip.

    geocoder: str -> Waypoint, raising GeocodingError (default: Nominatim)
    router: [Waypoint, ...] -> [{distance_miles, duration_hours, geometry}, ...]
        one dict per consecutive waypoint pair, raising RoutingError
        (default: OSRM, then ORS)

    Raises TripValidationError before any work if the input is unusable;
    any other PlanningError means the trip could not be planned.
    """
    config = config or HOSConfig()
    geocoder = geocoder or geocode
    router = router or get_route_legs
    _validate(current_location, pickup_location, dropoff_location, current_cycle_used, config)
    if start_time is None:
        start_time = default_start_time()

    current = geocoder(current_location.strip())
    pickup = geocoder(pickup_location.strip())
    dropoff = geocoder(dropoff_location.strip())

    legs = router([current, pickup, dropoff])
    segments = build_segments(current, pickup, dropoff, legs, config)
    simulation = simulate_trip(segments, float(current_cycle_used), start_time, config)

    stops = build_stops(simulation.decisions, origin=current)
    eld_logs = generate_eld_logs(simulation, final_location=dropoff.name)
    result = assemble_trip(segments, simulation, stops, eld_logs, summarize_days(simulation))

    logger.info(
        "Planned trip %s -> %s -> %s: %.1f mi, %.2f h, %d stops",
        current.name, pickup.name, dropoff.name,
        result.total_distance, result.total_duration, len(result.stops),
    )
    return result


def _validate(current_location, pickup_location, dropoff_location, current_cycle_used, config):
    for name, value in (
        ("current_location", current_location),
        ("pickup_location", pickup_location),
        ("dropoff_location", dropoff_location),
    ):
        if not isinstance(value, str) or not value.strip():
            raise TripValidationError(f"{name} must be a non-empty string")

    if isinstance(current_cycle_used, bool) or not isinstance(current_cycle_used, (int, float)):
        raise TripValidationError("current_cycle_used must be a number")
    if not math.isfinite(current_cycle_used) or not 0 <= current_cycle_used <= config.max_cycle_hours:
        raise TripValidationError(
            f"current_cycle_used must be between 0 and {config.max_cycle_hours:g} hours"
        )
