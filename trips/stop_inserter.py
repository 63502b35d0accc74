"""
Stop Inserter - turns the engine's stop decisions into the stop list
shown to the driver.

Consecutive synthetic stops at the same mileage (e.g. a 10-hour rest that
runs straight into a 34-hour restart) collapse into one stop carrying the
longer duration and the more specific type. Pickup and dropoff stops are
never merged away.
"""

from dataclasses import dataclass
from typing import List, Optional

from .hos_engine import StopKind

# Higher wins when synthetic stops merge.
STOP_RANK = {
    StopKind.FUEL: 1,
    StopKind.THIRTY_MINUTE_BREAK: 2,
    StopKind.DAILY_REST: 3,
    StopKind.CYCLE_RESET: 4,
}


@dataclass(frozen=True)
class Stop:
    type: StopKind
    duration: float
    distance_from_start: float
    coordinate: tuple
    location: Optional[str] = None

    def to_dict(self):
        data = {
            "type": self.type.value,
            "duration": round(self.duration, 2),
            "distance_from_start": round(self.distance_from_start, 1),
        }
        if self.location:
            data["location"] = self.location
        return data


def build_stops(decisions, origin) -> List[Stop]:
    """
    decisions: StopDecision list in the order the engine emitted them
    origin: Waypoint the trip starts from; stops taken there before
        departing are labelled with its name
    """
    stops: List[Stop] = []
    for decision in decisions:
        location = decision.location
        if location is None and decision.trigger_distance_miles == 0:
            location = origin.name or None

        stop = Stop(
            type=decision.kind,
            duration=decision.duration_hours,
            distance_from_start=decision.trigger_distance_miles,
            coordinate=decision.coordinate,
            location=location,
        )
        if stops and _mergeable(stops[-1], stop):
            stops[-1] = _merge(stops[-1], stop)
        else:
            stops.append(stop)

    stops.sort(key=lambda s: s.distance_from_start)
    return stops


def _mergeable(previous: Stop, stop: Stop) -> bool:
    return (
        previous.distance_from_start == stop.distance_from_start
        and not previous.type.is_handling
        and not stop.type.is_handling
    )


def _merge(previous: Stop, stop: Stop) -> Stop:
    winner = stop if STOP_RANK[stop.type] > STOP_RANK[previous.type] else previous
    return Stop(
        type=winner.type,
        duration=max(previous.duration, stop.duration),
        distance_from_start=previous.distance_from_start,
        coordinate=previous.coordinate,
        location=previous.location or stop.location,
    )
