from unittest import mock

import pytest
import requests

from trips import route_service
from trips.exceptions import GeocoderUnavailable, GeocodingError, RoutingError

from .factories import CHICAGO, INDIANAPOLIS


def response(payload):
    resp = mock.Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


OSRM_OK = {
    "code": "Ok",
    "routes": [{
        "distance": 290000.0,
        "duration": 10800.0,
        "geometry": {"coordinates": [[-87.6298, 41.8781], [-86.1581, 39.7684]]},
    }],
}


class TestGeocode:

    def test_returns_waypoint_named_after_query(self):
        with mock.patch.object(route_service.requests, "get",
                               return_value=response([{"lat": "41.8781", "lon": "-87.6298"}])):
            waypoint = route_service.geocode("Chicago, IL")

        assert waypoint.name == "Chicago, IL"
        assert waypoint.coordinate == (41.8781, -87.6298)

    def test_no_results(self):
        with mock.patch.object(route_service.requests, "get", return_value=response([])):
            with pytest.raises(GeocodingError):
                route_service.geocode("Atlantis")

    def test_service_failure(self):
        with mock.patch.object(route_service.requests, "get",
                               side_effect=requests.ConnectionError("down")):
            with pytest.raises(GeocoderUnavailable):
                route_service.geocode("Chicago, IL")

    def test_autocomplete(self):
        payload = [{"lat": "41.8", "lon": "-87.6", "display_name": "Chicago, Cook County"}]
        with mock.patch.object(route_service.requests, "get", return_value=response(payload)):
            assert route_service.geocode_autocomplete("Chic") == [
                {"lat": 41.8, "lng": -87.6, "name": "Chicago, Cook County"}
            ]


class TestGetRoute:

    def test_osrm_route(self):
        with mock.patch.object(route_service.requests, "get", return_value=response(OSRM_OK)):
            route = route_service.get_route(CHICAGO, INDIANAPOLIS)

        assert route["distance_miles"] == pytest.approx(180.2, abs=0.1)
        assert route["duration_hours"] == pytest.approx(3.0)
        assert route["geometry"][0] == [-87.6298, 41.8781]

    def test_same_point_is_empty_leg(self):
        with mock.patch.object(route_service.requests, "get") as get:
            route = route_service.get_route(CHICAGO, CHICAGO)

        get.assert_not_called()
        assert route["distance_miles"] == 0.0 and route["duration_hours"] == 0.0

    def test_no_route_without_fallback_provider(self, settings):
        settings.ORS_API_KEY = ""
        with mock.patch.object(route_service.requests, "get", return_value=response({"code": "NoRoute"})):
            with pytest.raises(RoutingError):
                route_service.get_route(CHICAGO, INDIANAPOLIS)

    def test_falls_back_to_ors(self, settings):
        settings.ORS_API_KEY = "test-key"
        ors = {
            "features": [{
                "properties": {"summary": {"distance": 160934.4, "duration": 7200.0}},
                "geometry": {"coordinates": [[-87.6298, 41.8781], [-86.1581, 39.7684]]},
            }]
        }
        with mock.patch.object(route_service.requests, "get", side_effect=requests.Timeout("slow")), \
                mock.patch.object(route_service.requests, "post", return_value=response(ors)) as post:
            route = route_service.get_route(CHICAGO, INDIANAPOLIS)

        assert post.call_args.kwargs["headers"]["Authorization"] == "test-key"
        assert route["distance_miles"] == pytest.approx(100.0)
        assert route["duration_hours"] == pytest.approx(2.0)

    def test_route_legs_in_order(self):
        with mock.patch.object(route_service, "get_route", side_effect=lambda a, b: (a.name, b.name)):
            legs = route_service.get_route_legs([CHICAGO, INDIANAPOLIS, CHICAGO])

        assert legs == [("Chicago, IL", "Indianapolis, IN"), ("Indianapolis, IN", "Chicago, IL")]
