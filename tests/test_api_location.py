"""
Tests for the /api/location endpoints.
"""

from unittest.mock import patch

import requests

from cleancare.address_service import PlaceResult


def test_geocode_falls_back_when_upstream_down(client):
    with patch("cleancare.address_service.requests.get", side_effect=requests.ConnectionError("down")):
        resp = client.get("/api/location/geocode/12.9716/77.5946")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["address"] == "Location at 12.9716, 77.5946"
    assert body["data"]["city"] == "Unknown Location"


def test_geocode_invalid(client):
    resp = client.get("/api/location/geocode/abc/77.5")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid coordinates provided"

    resp = client.get("/api/location/geocode/91/77.5")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Coordinates out of valid range"


def test_search(client):
    place = PlaceResult(display_name="Koramangala, Bengaluru", lat=12.93, lng=77.62)
    with patch("cleancare.routes.location.address_service.search_places", return_value=[place]) as mock_search:
        resp = client.get("/api/location/search/Koramangala")

    mock_search.assert_called_once_with("Koramangala")
    data = resp.json()["data"]
    assert data["query"] == "Koramangala"
    assert data["count"] == 1
    assert data["results"][0]["display_name"] == "Koramangala, Bengaluru"


def test_search_query_too_short(client):
    resp = client.get("/api/location/search/ab")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Search query must be at least 3 characters long"


def test_service_areas(client):
    data = client.get("/api/location/service-areas").json()["data"]
    assert data["count"] == 4
    assert {area["id"] for area in data["serviceAreas"]} == {"delhi", "mumbai", "bangalore", "hyderabad"}


class TestCheckServiceArea:

    def test_inside(self, client):
        resp = client.post("/api/location/check-service-area", json={"lat": "12.9716", "lng": 77.5946})
        data = resp.json()["data"]
        assert data["inServiceArea"] is True
        assert data["coordinates"] == {"lat": 12.9716, "lng": 77.5946}
        assert data["message"] == "Location is in service area"

    def test_outside(self, client):
        resp = client.post("/api/location/check-service-area", json={"lat": 51.5, "lng": -0.12})
        assert resp.json()["data"]["inServiceArea"] is False
        assert resp.json()["data"]["message"] == "Location is outside service area"

    def test_missing(self, client):
        resp = client.post("/api/location/check-service-area", json={"lat": 12.9})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Latitude and longitude are required"

    def test_invalid(self, client):
        resp = client.post("/api/location/check-service-area", json={"lat": "north", "lng": 77.5})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid coordinates"


def test_location_health(client):
    assert client.get("/api/location/health").json()["success"] is True
