"""
Waypoint Sequencer - turns geocoded waypoints and routed legs into the
ordered segment list the HOS engine simulates.

Legs come from the router in waypoint order (current -> pickup -> dropoff).
Each travel leg is followed by a zero-distance handling segment for the
pickup or dropoff work done at its destination.
"""

import math
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import InvalidRoute

EARTH_RADIUS_MILES = 3959


class SegmentPurpose(str, Enum):
    TRAVEL = "travel"
    PICKUP = "pickup"
    DROPOFF = "dropoff"


@dataclass(frozen=True)
class Waypoint:
    """A geocoded location."""
    name: str
    lat: float
    lng: float

    @classmethod
    def from_dict(cls, data: dict) -> "Waypoint":
        return cls(name=data.get("name", ""), lat=float(data["lat"]), lng=float(data["lng"]))

    @property
    def coordinate(self):
        return (self.lat, self.lng)


@dataclass(frozen=True)
class RouteSegment:
    start: Waypoint
    end: Waypoint
    distance_miles: float
    drive_duration_hours: float
    purpose: SegmentPurpose
    handling_hours: float = 0.0
    # Road geometry as (lat, lng) pairs; empty means straight line start -> end.
    geometry: tuple = field(default=(), repr=False)

    @property
    def is_travel(self) -> bool:
        return self.purpose is SegmentPurpose.TRAVEL

    @property
    def speed_mph(self) -> float:
        if self.drive_duration_hours <= 0:
            return 0.0
        return self.distance_miles / self.drive_duration_hours

    def point_at(self, fraction: float):
        """Coordinate reached after ``fraction`` (0..1) of this segment's distance."""
        fraction = min(max(fraction, 0.0), 1.0)
        path = list(self.geometry) or [self.start.coordinate, self.end.coordinate]
        if len(path) == 1:
            return _round_coord(path[0])

        lengths = [haversine_miles(a, b) for a, b in zip(path, path[1:])]
        total = sum(lengths)
        if total <= 0:
            return _round_coord(path[0])

        target = total * fraction
        travelled = 0.0
        for (a, b), length in zip(zip(path, path[1:]), lengths):
            if length > 0 and travelled + length >= target:
                return interpolate_location(a, b, (target - travelled) / length)
            travelled += length
        return _round_coord(path[-1])


def haversine_miles(a, b) -> float:
    lat1, lon1 = a
    lat2, lon2 = b
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_MILES * 2 * math.asin(math.sqrt(h))


def interpolate_location(start, end, fraction):
    """Linearly interpolate between two (lat, lng) points."""
    lat = start[0] + (end[0] - start[0]) * fraction
    lng = start[1] + (end[1] - start[1]) * fraction
    return (round(lat, 6), round(lng, 6))


def _round_coord(point):
    return (round(point[0], 6), round(point[1], 6))


def build_segments(current, pickup, dropoff, legs, config):
    """
    Build the ordered segment list for a trip.

    current, pickup, dropoff: Waypoint
    legs: two dicts from the router, in order, with keys
        - distance_miles: float
        - duration_hours: float
        - geometry: [[lng, lat], ...] (optional)
    config: HOSConfig supplying the handling durations

    Raises InvalidRoute when a leg's distance and duration disagree.
    """
    if len(legs) != 2:
        raise InvalidRoute(f"Expected 2 route legs, got {len(legs)}")

    plan = (
        (current, pickup, SegmentPurpose.PICKUP, config.pickup_duration_hours),
        (pickup, dropoff, SegmentPurpose.DROPOFF, config.dropoff_duration_hours),
    )

    segments = []
    for (start, end, handling, handling_hours), leg in zip(plan, legs):
        distance = float(leg["distance_miles"])
        duration = float(leg["duration_hours"])
        _check_leg(start, end, distance, duration)

        segments.append(RouteSegment(
            start=start,
            end=end,
            distance_miles=distance,
            drive_duration_hours=duration,
            purpose=SegmentPurpose.TRAVEL,
            geometry=tuple((float(lat), float(lng)) for lng, lat in leg.get("geometry") or ()),
        ))
        segments.append(RouteSegment(
            start=end,
            end=end,
            distance_miles=0.0,
            drive_duration_hours=0.0,
            purpose=handling,
            handling_hours=handling_hours,
        ))
    return segments


def _check_leg(start, end, distance, duration):
    label = f"{start.name or 'start'} -> {end.name or 'end'}"
    if not (math.isfinite(distance) and math.isfinite(duration)):
        raise InvalidRoute(f"Leg {label} has a non-finite distance or duration")
    if distance < 0 or duration < 0:
        raise InvalidRoute(f"Leg {label} has a negative distance or duration")
    if (distance > 0) != (duration > 0):
        raise InvalidRoute(
            f"Leg {label} is inconsistent: {distance} miles in {duration} hours"
        )
