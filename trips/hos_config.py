"""
HOS threshold configuration.

FMCSA defaults for property-carrying drivers on the 70hr/8day cycle:
- 11 hours driving and a 14-hour on-duty window per shift
- 30-minute break after 8 cumulative hours of driving
- 10 consecutive hours off duty to start a new shift
- 34 consecutive hours off duty to restart the cycle

Overrides come from the ``HOS_RULES`` Django setting.
"""

from dataclasses import dataclass, fields, replace

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class HOSConfig:
    max_drive_hours: float = 11.0
    max_window_hours: float = 14.0
    max_cycle_hours: float = 70.0
    break_threshold_hours: float = 8.0
    break_duration_hours: float = 0.5
    daily_rest_hours: float = 10.0
    cycle_reset_hours: float = 34.0
    fuel_interval_miles: float = 1000.0
    fuel_duration_hours: float = 0.5
    pickup_duration_hours: float = 1.0
    dropoff_duration_hours: float = 1.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{f.name} must be a number, got {value!r}")
            if value <= 0:
                raise ConfigurationError(f"{f.name} must be positive, got {value}")
        if self.break_threshold_hours > self.max_drive_hours:
            raise ConfigurationError("break_threshold_hours cannot exceed max_drive_hours")
        if self.max_drive_hours > self.max_window_hours:
            raise ConfigurationError("max_drive_hours cannot exceed max_window_hours")
        if self.cycle_reset_hours < self.daily_rest_hours:
            raise ConfigurationError("cycle_reset_hours cannot be shorter than daily_rest_hours")
        # Each on-duty activity has to fit into a fresh window and cycle.
        longest = max(
            self.break_duration_hours,
            self.fuel_duration_hours,
            self.pickup_duration_hours,
            self.dropoff_duration_hours,
        )
        if longest >= min(self.max_window_hours, self.max_cycle_hours):
            raise ConfigurationError("on-duty stop durations must fit inside a fresh duty window")

    @classmethod
    def from_settings(cls):
        """Build the config from ``settings.HOS_RULES`` (missing keys keep defaults)."""
        from django.conf import settings

        overrides = getattr(settings, "HOS_RULES", None) or {}
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown HOS_RULES keys: {', '.join(sorted(unknown))}")
        return replace(cls(), **overrides)
