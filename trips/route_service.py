"""
Route Service - geocoding via Nominatim, driving directions via OSRM with
OpenRouteService as a second provider when an API key is configured.

These are the planner's external collaborators. Failures surface as
GeocodingError, GeocoderUnavailable or RoutingError; nothing here is retried.
"""

import logging

import requests
from django.conf import settings

from .exceptions import GeocoderUnavailable, GeocodingError, RoutingError
from .sequencer import Waypoint

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.344


def _nominatim_search(query: str, limit: int) -> list:
    resp = requests.get(
        f"{settings.NOMINATIM_BASE_URL}/search",
        params={"q": query, "format": "json", "limit": limit, "countrycodes": "us"},
        headers={"User-Agent": settings.GEOCODER_USER_AGENT},
        timeout=settings.ROUTING_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    return resp.json()


def geocode(query: str) -> Waypoint:
    """Geocode an address string to a Waypoint using Nominatim (free)."""
    try:
        results = _nominatim_search(query, limit=1)
    except (requests.RequestException, ValueError) as e:
        raise GeocoderUnavailable(f"Geocoding service failed for {query!r}: {e}") from e
    if not results:
        raise GeocodingError(f"Could not geocode: {query}")
    r = results[0]
    return Waypoint(name=query, lat=float(r["lat"]), lng=float(r["lon"]))


def geocode_autocomplete(query: str) -> list:
    """Get location suggestions for autocomplete."""
    return [
        {
            "lat": float(r["lat"]),
            "lng": float(r["lon"]),
            "name": r.get("display_name", ""),
        }
        for r in _nominatim_search(query, limit=5)
    ]


def get_route(start: Waypoint, end: Waypoint) -> dict:
    """
    Get driving route between two points.
    Uses OSRM first, then ORS if a key is configured.
    Returns: { distance_miles, duration_hours, geometry: [[lng,lat],...] }
    """
    if start.coordinate == end.coordinate:
        return {"distance_miles": 0.0, "duration_hours": 0.0, "geometry": []}

    try:
        return _get_route_osrm(start, end)
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.warning("OSRM routing failed for %s -> %s: %s", start.name, end.name, e)
        error = e

    api_key = getattr(settings, "ORS_API_KEY", "")
    if api_key:
        try:
            return _get_route_ors(start, end, api_key)
        except (requests.RequestException, ValueError, KeyError, IndexError) as e:
            logger.warning("ORS routing failed for %s -> %s: %s", start.name, end.name, e)
            error = e

    raise RoutingError(f"No route found from {start.name} to {end.name}: {error}")


def get_route_legs(waypoints) -> list:
    """Route each consecutive pair of waypoints, in order."""
    return [get_route(a, b) for a, b in zip(waypoints, waypoints[1:])]


def _get_route_osrm(start: Waypoint, end: Waypoint) -> dict:
    """Get route from OSRM (free, no API key)."""
    url = (
        f"{settings.OSRM_BASE_URL}/route/v1/driving/"
        f"{start.lng},{start.lat};{end.lng},{end.lat}"
    )
    resp = requests.get(
        url,
        params={"overview": "simplified", "geometries": "geojson"},
        timeout=settings.ROUTING_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    data = resp.json()

    if data.get("code") != "Ok" or not data.get("routes"):
        raise ValueError(f"OSRM returned no route ({data.get('code')})")

    route = data["routes"][0]
    return {
        "distance_miles": route["distance"] / METERS_PER_MILE,
        "duration_hours": route["duration"] / 3600,
        "geometry": route["geometry"]["coordinates"],  # [[lng, lat], ...]
    }


def _get_route_ors(start: Waypoint, end: Waypoint, api_key: str) -> dict:
    """Get route from OpenRouteService."""
    resp = requests.post(
        f"{settings.ORS_BASE_URL}/v2/directions/driving-hgv/geojson",
        json={
            "coordinates": [
                [start.lng, start.lat],
                [end.lng, end.lat],
            ]
        },
        headers={
            "Authorization": api_key,
            "Content-Type": "application/json",
        },
        timeout=settings.ROUTING_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    data = resp.json()

    feat = data["features"][0]
    props = feat["properties"]["summary"]

    return {
        "distance_miles": props["distance"] / METERS_PER_MILE,
        "duration_hours": props["duration"] / 3600,
        "geometry": feat["geometry"]["coordinates"],
    }
