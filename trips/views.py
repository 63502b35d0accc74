import logging

import requests
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .exceptions import (
    GeocoderUnavailable,
    GeocodingError,
    PlanningError,
    RoutingError,
    TripValidationError,
)
from .hos_config import HOSConfig
from .planner import plan_trip
from .route_service import geocode_autocomplete
from .serializers import TripRequestSerializer

logger = logging.getLogger(__name__)


@api_view(["POST"])
def calculate_route(request):
    """Plan a trip with HOS-compliant stops and generate ELD logs."""
    serializer = TripRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {"error": "Invalid trip request", "details": serializer.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    data = serializer.validated_data

    try:
        result = plan_trip(
            current_location=data["current_location"],
            pickup_location=data["pickup_location"],
            dropoff_location=data["dropoff_location"],
            current_cycle_used=data["current_cycle_used"],
            start_time=data.get("start_time"),
            config=HOSConfig.from_settings(),
        )
    except TripValidationError as e:
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except GeocodingError as e:
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except (GeocoderUnavailable, RoutingError) as e:
        return Response({"error": str(e)}, status=status.HTTP_502_BAD_GATEWAY)
    except PlanningError as e:
        logger.exception("Trip planning failed")
        return Response(
            {"error": f"Trip planning failed: {e}"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return Response(result.to_dict())


@api_view(["GET"])
def autocomplete(request):
    """Geocoding autocomplete for location search."""
    query = request.query_params.get("q", "").strip()
    if len(query) < 3:
        return Response([])
    try:
        results = geocode_autocomplete(query)
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.warning("Autocomplete lookup failed for %r: %s", query, e)
        return Response([])
    return Response(results)
