import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from osm_sync.api.v1 import geocode as geocode_api
from osm_sync.api.v1.router import v1_router
from osm_sync.auth.supabase_auth import verify_jwt

AUSTIN = {
    "geometry": {"coordinates": [-97.7431, 30.2672]},
    "properties": {"name": "Austin", "type": "city", "state": "Texas", "country": "United States"},
}


def _client_for(handler):
    geocode_api.set_http_client(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    app = FastAPI()
    app.include_router(v1_router)
    app.dependency_overrides[verify_jwt] = lambda: {"id": "user-1"}
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_client():
    yield
    geocode_api.set_http_client(None)


def test_search_maps_features():
    def handler(request):
        assert request.url.path == "/api"
        assert request.url.params["q"] == "austin"
        return httpx.Response(200, json={"features": [AUSTIN]})

    with _client_for(handler) as client:
        data = client.get("/api/v1/osm/search", params={"q": "austin"}).json()

    assert data["source"] == "local"
    assert data["results"] == [{
        "display_name": "Austin",
        "lat": 30.2672,
        "lon": -97.7431,
        "type": "city",
        "city": None,
        "state": "Texas",
        "country": "United States",
    }]


def test_empty_query_skips_geocoder():
    def handler(request):
        raise AssertionError("geocoder should not be called")

    with _client_for(handler) as client:
        assert client.get("/api/v1/osm/search").json() == {"results": []}


def test_search_with_geocoder_down():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with _client_for(handler) as client:
        data = client.get("/api/v1/osm/search", params={"q": "austin"}).json()

    assert data == {"results": [], "source": "none", "error": "Local geocoder not available"}


def test_reverse_requires_coordinates():
    with _client_for(lambda request: httpx.Response(200, json={})) as client:
        assert client.get("/api/v1/osm/reverse", params={"lat": 30.2}).status_code == 400


def test_reverse_uses_first_feature():
    with _client_for(lambda request: httpx.Response(200, json={"features": [AUSTIN]})) as client:
        data = client.get("/api/v1/osm/reverse", params={"lat": 30.2672, "lon": -97.7431}).json()

    assert data["display_name"] == "Austin"
    assert data["address"]["state"] == "Texas"


def test_reverse_falls_back_to_coordinates():
    with _client_for(lambda request: httpx.Response(500)) as client:
        data = client.get("/api/v1/osm/reverse", params={"lat": 30.5, "lon": -97.25}).json()

    assert data == {"display_name": "30.5, -97.25", "lat": 30.5, "lon": -97.25}


def test_search_with_feature_missing_geometry():
    broken = {"geometry": None, "properties": {"name": "Nowhere"}}
    with _client_for(lambda request: httpx.Response(200, json={"features": [broken]})) as client:
        data = client.get("/api/v1/osm/search", params={"q": "nowhere"}).json()

    assert data == {"results": [], "source": "none", "error": "Local geocoder not available"}


def test_search_with_non_object_body():
    with _client_for(lambda request: httpx.Response(200, json=[])) as client:
        response = client.get("/api/v1/osm/search", params={"q": "austin"})

    assert response.status_code == 200
    assert response.json()["source"] == "none"


def test_reverse_with_non_object_body_falls_back():
    with _client_for(lambda request: httpx.Response(200, json=[])) as client:
        response = client.get("/api/v1/osm/reverse", params={"lat": 1, "lon": 2})

    assert response.status_code == 200
    assert response.json() == {"display_name": "1.0, 2.0", "lat": 1.0, "lon": 2.0}
