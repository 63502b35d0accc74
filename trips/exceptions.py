"""
Trip planning errors.

Every failure of a planning request is raised as one of these; the API
layer maps them to HTTP responses.
"""


class PlanningError(Exception):
    """Base class for anything that stops a trip from being planned."""


class TripValidationError(PlanningError):
    """Input is malformed or out of range. Raised before any simulation."""


class ConfigurationError(PlanningError):
    """HOS thresholds are inconsistent."""


class UpstreamError(PlanningError):
    """A geocoding or routing collaborator failed."""


class GeocodingError(UpstreamError):
    """A location string could not be resolved to coordinates."""


class GeocoderUnavailable(UpstreamError):
    """The geocoding service could not be reached or returned an error."""


class RoutingError(UpstreamError):
    """No driving route could be found between waypoints."""


class InvalidRoute(PlanningError):
    """Route legs are internally inconsistent (distance vs duration)."""


class IncompleteSimulation(PlanningError):
    """The rule engine stopped before covering the whole route."""
