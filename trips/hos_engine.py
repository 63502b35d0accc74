"""
Hours of Service (HOS) Rule Engine

FMCSA rules for property-carrying drivers (70hr/8day cycle):
- 11-Hour Driving Limit: Max 11 hrs driving after 10 consecutive hrs off duty
- 14-Hour Window: No driving once 14 hrs have passed since coming on duty
- 30-Minute Break: Required after 8 cumulative hours of driving
- 70-Hour/8-Day Cycle: No on-duty time beyond 70 hrs; a 34-hr restart resets it
- 10-Hour Rest: Required before driving again once a daily limit is reached

The engine walks the segment list in order. Driving is consumed in slices
that end exactly where the next limit (or fuel interval, or segment end)
would be crossed, so one long leg can trigger any number of stops. At each
instant at most one stop is emitted, checked in this order:
daily rest > cycle reset > 30-minute break > fuel.

Assumptions:
- Driving speed per leg is the routing engine's distance / duration
- Fuel stop every 1,000 miles (30 min, on-duty not driving)
- 1 hour for pickup, 1 hour for dropoff (on-duty not driving)
- No adverse driving conditions, no split sleeper
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from .exceptions import IncompleteSimulation
from .hos_config import HOSConfig
from .sequencer import SegmentPurpose

logger = logging.getLogger(__name__)

EPS_HOURS = 1e-7
EPS_MILES = 1e-6
MAX_SIMULATION_STEPS = 100_000


class DutyStatus(str, Enum):
    OFF_DUTY = "OffDuty"
    SLEEPER = "SleeperBerth"
    DRIVING = "Driving"
    ON_DUTY = "OnDutyNotDriving"


class StopKind(str, Enum):
    THIRTY_MINUTE_BREAK = "ThirtyMinuteBreak"
    DAILY_REST = "DailyRest10h"
    CYCLE_RESET = "CycleReset34h"
    FUEL = "Fuel"
    PICKUP = "PickupHandling"
    DROPOFF = "DropoffHandling"

    @property
    def is_handling(self):
        return self in (StopKind.PICKUP, StopKind.DROPOFF)


STOP_STATUS = {
    StopKind.THIRTY_MINUTE_BREAK: DutyStatus.ON_DUTY,
    StopKind.DAILY_REST: DutyStatus.SLEEPER,
    StopKind.CYCLE_RESET: DutyStatus.OFF_DUTY,
    StopKind.FUEL: DutyStatus.ON_DUTY,
    StopKind.PICKUP: DutyStatus.ON_DUTY,
    StopKind.DROPOFF: DutyStatus.ON_DUTY,
}

STOP_REMARKS = {
    StopKind.THIRTY_MINUTE_BREAK: "30-minute break",
    StopKind.DAILY_REST: "10-hour rest",
    StopKind.CYCLE_RESET: "34-hour restart",
    StopKind.FUEL: "Fuel stop",
    StopKind.PICKUP: "Reached pickup location - loading",
    StopKind.DROPOFF: "Reached dropoff location - unloading",
}


@dataclass
class DutyClock:
    """Mutable HOS counters for one simulation run."""
    current_time: datetime
    cycle_hours_used: float = 0.0
    drive_hours_today: float = 0.0
    on_duty_window_hours: float = 0.0
    hours_since_break: float = 0.0
    current_status: DutyStatus = DutyStatus.OFF_DUTY
    miles: float = 0.0
    miles_since_fuel: float = 0.0
    # Consecutive hours off duty / sleeper since the last on-duty activity.
    off_duty_streak_hours: float = 0.0

    def advance(self, hours):
        self.current_time += timedelta(hours=hours)

    def add_driving(self, hours):
        self.drive_hours_today += hours
        self.on_duty_window_hours += hours
        self.hours_since_break += hours
        self.cycle_hours_used += hours
        self.off_duty_streak_hours = 0.0
        self.current_status = DutyStatus.DRIVING
        self.advance(hours)

    def add_on_duty(self, hours, break_hours):
        self.on_duty_window_hours += hours
        self.cycle_hours_used += hours
        if hours >= break_hours - EPS_HOURS:
            self.hours_since_break = 0.0
        self.off_duty_streak_hours = 0.0
        self.current_status = DutyStatus.ON_DUTY
        self.advance(hours)

    def take_rest(self, hours, status=DutyStatus.SLEEPER):
        self.drive_hours_today = 0.0
        self.on_duty_window_hours = 0.0
        self.hours_since_break = 0.0
        self.off_duty_streak_hours += hours
        self.current_status = status
        self.advance(hours)

    def reset_cycle(self, hours):
        self.take_rest(hours, status=DutyStatus.OFF_DUTY)
        self.cycle_hours_used = 0.0

    def snap(self, config: HOSConfig):
        """Pin counters that landed within float noise of a limit onto it."""
        for name, cap in (
            ("drive_hours_today", config.max_drive_hours),
            ("on_duty_window_hours", config.max_window_hours),
            ("cycle_hours_used", config.max_cycle_hours),
            ("hours_since_break", config.break_threshold_hours),
        ):
            if abs(getattr(self, name) - cap) < EPS_HOURS:
                setattr(self, name, cap)


@dataclass(frozen=True)
class StopDecision:
    kind: StopKind
    trigger_distance_miles: float
    duration_hours: float
    at: datetime
    coordinate: tuple
    location: Optional[str] = None
    absorbed: tuple = ()


@dataclass
class DutyEvent:
    """One contiguous period in a single duty status."""
    status: DutyStatus
    start_time: datetime
    end_time: datetime
    start_miles: float
    end_miles: float
    location: str
    remarks: str
    kind: Optional[StopKind] = None

    @property
    def duration_hours(self):
        return (self.end_time - self.start_time).total_seconds() / 3600

    @property
    def driving_hours(self):
        return self.duration_hours if self.status is DutyStatus.DRIVING else 0.0


@dataclass
class Simulation:
    """Recorded output of one engine run."""
    start_time: datetime
    end_time: datetime
    total_distance: float
    distance_covered: float
    initial_cycle_hours: float
    decisions: List[StopDecision] = field(default_factory=list)
    events: List[DutyEvent] = field(default_factory=list)

    @property
    def total_duration_hours(self):
        return (self.end_time - self.start_time).total_seconds() / 3600


def near_mile(miles):
    return f"Near mile {miles:.0f}"


class HOSSimulator:
    """
    Runs one trip through the HOS rules. Create one per trip; the clock
    it owns is discarded with it.
    """

    def __init__(self, segments, current_cycle_used: float, start_time: datetime,
                 config: Optional[HOSConfig] = None):
        self.segments = list(segments)
        self.config = config or HOSConfig()
        self.start_time = start_time
        self.initial_cycle_hours = current_cycle_used
        self.clock = DutyClock(current_time=start_time, cycle_hours_used=current_cycle_used)
        self.decisions: List[StopDecision] = []
        self.events: List[DutyEvent] = []
        self._steps = 0
        # Position context for stops: current segment and the mileage it starts at.
        self._segment = None
        self._segment_start = 0.0

    def run(self) -> Simulation:
        total = 0.0
        for segment in self.segments:
            self._segment = segment
            self._segment_start = total
            total += segment.distance_miles
            if segment.is_travel:
                self._drive(segment, total)
            else:
                self._handle(segment)

        return Simulation(
            start_time=self.start_time,
            end_time=self.clock.current_time,
            total_distance=total,
            distance_covered=self.clock.miles,
            initial_cycle_hours=self.initial_cycle_hours,
            decisions=self.decisions,
            events=self.events,
        )

    # -- limits -----------------------------------------------------------

    def _drive_left(self):
        cfg, c = self.config, self.clock
        return min(cfg.max_drive_hours - c.drive_hours_today,
                   cfg.max_window_hours - c.on_duty_window_hours)

    def _cycle_left(self):
        return self.config.max_cycle_hours - self.clock.cycle_hours_used

    def _break_left(self):
        return self.config.break_threshold_hours - self.clock.hours_since_break

    def _fuel_left_miles(self):
        return self.config.fuel_interval_miles - self.clock.miles_since_fuel

    def _rest_needed_for(self, hours) -> Optional[StopKind]:
        """Rest that must come first for ``hours`` of on-duty work to fit."""
        cfg, c = self.config, self.clock
        if c.on_duty_window_hours + hours > cfg.max_window_hours + EPS_HOURS:
            return StopKind.DAILY_REST
        if c.cycle_hours_used + hours > cfg.max_cycle_hours + EPS_HOURS:
            return StopKind.CYCLE_RESET
        return None

    def _stop_due(self) -> Optional[StopKind]:
        """The single stop required before any more driving, if any."""
        if self._drive_left() <= EPS_HOURS:
            return StopKind.DAILY_REST
        if self._cycle_left() <= EPS_HOURS:
            return StopKind.CYCLE_RESET
        if self._break_left() <= EPS_HOURS:
            return self._rest_needed_for(self.config.break_duration_hours) or StopKind.THIRTY_MINUTE_BREAK
        if self._fuel_left_miles() <= EPS_MILES:
            return self._rest_needed_for(self.config.fuel_duration_hours) or StopKind.FUEL
        return None

    # -- transitions ------------------------------------------------------

    def _drive(self, segment, end_miles):
        remaining = segment.drive_duration_hours
        speed = segment.speed_mph

        while remaining > EPS_HOURS:
            self._tick()
            kind = self._stop_due()
            if kind is not None:
                self._take_stop(kind)
                continue

            slice_hours = min(
                remaining,
                self._drive_left(),
                self._cycle_left(),
                self._break_left(),
                self._fuel_left_miles() / speed,
            )
            final = remaining - slice_hours <= EPS_HOURS
            start_miles = self.clock.miles
            new_miles = end_miles if final else start_miles + slice_hours * speed

            self._record_driving(segment, slice_hours, start_miles, new_miles)
            self.clock.add_driving(slice_hours)
            self.clock.snap(self.config)
            self.clock.miles = new_miles
            self.clock.miles_since_fuel += new_miles - start_miles
            if abs(self._fuel_left_miles()) < EPS_MILES:
                self.clock.miles_since_fuel = self.config.fuel_interval_miles
            remaining = 0.0 if final else remaining - slice_hours

        # Sub-epsilon leftovers still land the truck at the segment end.
        if self.clock.miles != end_miles:
            self.clock.miles_since_fuel += end_miles - self.clock.miles
            self.clock.miles = end_miles
            if self.events and self.events[-1].status is DutyStatus.DRIVING:
                self.events[-1].end_miles = end_miles

    def _handle(self, segment):
        kind = StopKind.PICKUP if segment.purpose is SegmentPurpose.PICKUP else StopKind.DROPOFF
        while True:
            self._tick()
            rest = self._rest_needed_for(segment.handling_hours)
            if rest is None:
                break
            self._take_stop(rest)
        self._take_stop(kind, duration=segment.handling_hours)

    def _take_stop(self, kind: StopKind, duration: Optional[float] = None):
        cfg, clock = self.config, self.clock

        absorbed = ()
        if kind is not StopKind.FUEL and self._fuel_left_miles() <= EPS_MILES:
            absorbed = (StopKind.FUEL,)

        if kind is StopKind.DAILY_REST:
            duration = cfg.daily_rest_hours
            elapsed = duration
        elif kind is StopKind.CYCLE_RESET:
            duration = cfg.cycle_reset_hours
            # Off-duty time already taken at this spot counts toward the restart.
            elapsed = max(duration - clock.off_duty_streak_hours, 0.0)
        elif kind is StopKind.THIRTY_MINUTE_BREAK:
            duration = elapsed = cfg.break_duration_hours
        elif kind is StopKind.FUEL:
            duration = elapsed = cfg.fuel_duration_hours
        else:
            elapsed = duration

        location, coordinate = self._position()
        decision = StopDecision(
            kind=kind,
            trigger_distance_miles=clock.miles,
            duration_hours=duration,
            at=clock.current_time,
            coordinate=coordinate,
            location=location if kind.is_handling else None,
            absorbed=absorbed,
        )
        self.decisions.append(decision)
        logger.debug(
            "HOS stop %s at mile %.1f (%s), drive=%.2f window=%.2f cycle=%.2f since_break=%.2f",
            kind.value, clock.miles, clock.current_time.isoformat(),
            clock.drive_hours_today, clock.on_duty_window_hours,
            clock.cycle_hours_used, clock.hours_since_break,
        )

        remarks = STOP_REMARKS[kind]
        if kind is StopKind.CYCLE_RESET and elapsed < duration:
            remarks += f" (includes {duration - elapsed:g} hours already off duty)"
        if absorbed:
            remarks += ", fueling"
        self._record(STOP_STATUS[kind], elapsed, location, remarks, kind)

        if kind is StopKind.DAILY_REST:
            clock.take_rest(elapsed)
        elif kind is StopKind.CYCLE_RESET:
            clock.reset_cycle(elapsed)
        else:
            clock.add_on_duty(elapsed, cfg.break_duration_hours)
        clock.snap(cfg)
        if absorbed or kind is StopKind.FUEL:
            clock.miles_since_fuel = 0.0

    # -- trace ------------------------------------------------------------

    def _position(self):
        segment = self._segment
        if not segment.is_travel:
            return segment.end.name, segment.end.coordinate
        offset = self.clock.miles - self._segment_start
        if offset <= EPS_MILES:
            return segment.start.name, segment.start.coordinate
        if offset >= segment.distance_miles - EPS_MILES:
            return segment.end.name, segment.end.coordinate
        return near_mile(self.clock.miles), segment.point_at(offset / segment.distance_miles)

    def _record(self, status, hours, location, remarks, kind=None):
        start = self.clock.current_time
        self.events.append(DutyEvent(
            status=status,
            start_time=start,
            end_time=start + timedelta(hours=hours),
            start_miles=self.clock.miles,
            end_miles=self.clock.miles,
            location=location,
            remarks=remarks,
            kind=kind,
        ))

    def _record_driving(self, segment, hours, start_miles, end_miles):
        last = self.events[-1] if self.events else None
        start = self.clock.current_time
        end = start + timedelta(hours=hours)
        if last is not None and last.status is DutyStatus.DRIVING and last.end_time == start:
            last.end_time = end
            last.end_miles = end_miles
            return
        location, _ = self._position()
        self.events.append(DutyEvent(
            status=DutyStatus.DRIVING,
            start_time=start,
            end_time=end,
            start_miles=start_miles,
            end_miles=end_miles,
            location=location,
            remarks=f"Driving to {segment.end.name or 'destination'}",
        ))

    def _tick(self):
        self._steps += 1
        if self._steps > MAX_SIMULATION_STEPS:
            raise IncompleteSimulation(
                f"Simulation exceeded {MAX_SIMULATION_STEPS} steps at mile {self.clock.miles:.1f}"
            )


def simulate_trip(segments, current_cycle_used: float, start_time: datetime,
                  config: Optional[HOSConfig] = None) -> Simulation:
    """Run the HOS rules over ``segments`` starting at ``start_time``."""
    return HOSSimulator(segments, current_cycle_used, start_time, config).run()
