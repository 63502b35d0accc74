"""
ELD Log Compiler

Replays the duty-status trace recorded by the HOS engine and produces the
flat log table the client renders: one row per duty-status period, with a
new row at every midnight a period runs across. Rows are ordered by time;
grouping into days is left to the consumer.

Each row contains:
- date: "YYYY-MM-DD" and time: "HH:MM" of the period start
- status: Driving / OnDutyNotDriving / SleeperBerth / OffDuty
- location and remarks
- hours_driven: driving hours in the row (0 for other statuses)
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List

from .hos_engine import DutyStatus

TOTAL_KEYS = {
    DutyStatus.OFF_DUTY: "off_duty",
    DutyStatus.SLEEPER: "sleeper_berth",
    DutyStatus.DRIVING: "driving",
    DutyStatus.ON_DUTY: "on_duty_not_driving",
}


@dataclass(frozen=True)
class EldLogEntry:
    start: datetime
    status: DutyStatus
    location: str
    hours_driven: float
    remarks: str

    @property
    def date(self):
        return self.start.strftime("%Y-%m-%d")

    @property
    def time(self):
        return self.start.strftime("%H:%M")

    def to_dict(self):
        return {
            "date": self.date,
            "time": self.time,
            "status": self.status.value,
            "location": self.location,
            "hours_driven": round(self.hours_driven, 2),
            "remarks": self.remarks,
        }


def generate_eld_logs(simulation, final_location: str = "") -> List[EldLogEntry]:
    """
    Build the log rows for a finished simulation.

    The last row is a zero-length OffDuty entry marking the end of the trip.
    """
    entries: List[EldLogEntry] = []
    for event in simulation.events:
        for index, (piece_start, piece_end) in enumerate(split_by_day(event.start_time, event.end_time)):
            hours = (piece_end - piece_start).total_seconds() / 3600
            remarks = event.remarks if index == 0 else "Continued from previous day"
            entries.append(EldLogEntry(
                start=piece_start,
                status=event.status,
                location=event.location,
                hours_driven=hours if event.status is DutyStatus.DRIVING else 0.0,
                remarks=remarks,
            ))

    if simulation.events:
        entries.append(EldLogEntry(
            start=simulation.end_time,
            status=DutyStatus.OFF_DUTY,
            location=final_location or simulation.events[-1].location,
            hours_driven=0.0,
            remarks="Trip complete",
        ))
    return entries


def split_by_day(start: datetime, end: datetime):
    """Yield (start, end) pieces of a period, cut at each midnight."""
    current = start
    while current < end:
        midnight = datetime.combine(current.date() + timedelta(days=1), datetime.min.time(),
                                    tzinfo=current.tzinfo)
        piece_end = min(midnight, end)
        yield current, piece_end
        current = piece_end


def summarize_days(simulation):
    """
    Per-day totals for the trip.

    Returns a list of dicts ordered by date:
    - date: "YYYY-MM-DD"
    - total_hours: {off_duty, sleeper_berth, driving, on_duty_not_driving}
    - total_miles: miles driven that day
    """
    hours = defaultdict(lambda: defaultdict(float))
    miles = defaultdict(float)

    for event in simulation.events:
        duration = event.duration_hours
        for piece_start, piece_end in split_by_day(event.start_time, event.end_time):
            day = piece_start.strftime("%Y-%m-%d")
            piece_hours = (piece_end - piece_start).total_seconds() / 3600
            hours[day][TOTAL_KEYS[event.status]] += piece_hours
            if event.status is DutyStatus.DRIVING and duration > 0:
                miles[day] += (event.end_miles - event.start_miles) * piece_hours / duration

    return [
        {
            "date": day,
            "total_hours": {key: round(hours[day].get(key, 0.0), 2) for key in TOTAL_KEYS.values()},
            "total_miles": round(miles[day], 1),
        }
        for day in sorted(hours)
    ]
