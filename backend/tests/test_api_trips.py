from io import BytesIO
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from PIL import Image

from api.main import app
from api.routes import trips as trips_router
from domain.errors import TripGenerationError
from domain.models import GeocodeFeature

client = TestClient(app)


def _jpeg(color="white") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (32, 32), color=color).save(buffer, format="JPEG")
    return buffer.getvalue()


def test_health():
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["status"] == "ok"


@patch("services.trip_assembler.get_default_geocoder", return_value=MagicMock())
def test_generate_without_gps(mock_geocoder):
    files = [
        ("photos", ("a.jpg", _jpeg(), "image/jpeg")),
        ("photos", ("b.jpg", _jpeg("black"), "image/jpeg")),
    ]
    data = {"last_modified": ["1714723200000", "1714726800000"], "locale": "en"}
    resp = client.post("/trips/generate", files=files, data=data)

    assert resp.status_code == 200
    body = resp.json()
    assert body["trip"]["photo_count"] == 2
    assert body["trip"]["spots"] == []
    assert body["trip"]["title"] == "Travel record"
    assert len(body["tags"]) == 5
    assert body["cancelled"] is False
    assert "No location data found. Did you mean to add locations manually?" in body["warnings"]


def test_generate_requires_photos():
    resp = client.post("/trips/generate", data={"locale": "ja"})
    assert resp.status_code == 400


def test_generate_rejects_too_many_photos():
    files = [("photos", (f"{i}.jpg", b"x", "image/jpeg")) for i in range(3)]
    with patch.object(trips_router.settings, "MAX_PHOTOS_PER_REQUEST", 2):
        resp = client.post("/trips/generate", files=files)
    assert resp.status_code == 400


def test_generate_maps_pipeline_error_to_400():
    files = [("photos", ("a.jpg", _jpeg(), "image/jpeg"))]
    with patch.object(trips_router, "generate_trip", side_effect=TripGenerationError("bad input")):
        resp = client.post("/trips/generate", files=files)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "bad input"


def test_generate_title():
    payload = {
        "locale": "en",
        "tags": [
            {"category": "place", "label": "Kyoto", "score": 0.95},
            {"category": "season", "label": "Autumn trip", "score": 0.9},
            {"category": "mood", "label": "Soft light", "score": 0.75},
        ],
    }
    resp = client.post("/trips/generate-title", json=payload)
    assert resp.status_code == 200
    suggestions = resp.json()["suggestions"]
    assert suggestions[0]["title"] == "Kyoto, Autumn trip Soft light"
    assert suggestions[0]["used_tag_ids"] == ["place:Kyoto", "season:Autumn trip", "mood:Soft light"]


def test_generate_title_requires_three_tags():
    payload = {"tags": [{"category": "place", "label": "Kyoto", "score": 0.9}]}
    assert client.post("/trips/generate-title", json=payload).status_code == 400


def test_generate_title_rejects_unknown_category():
    payload = {"tags": [{"category": "weather", "label": "x", "score": 0.5}] * 3}
    assert client.post("/trips/generate-title", json=payload).status_code == 422


def test_debug_geocode_disabled():
    with patch.object(trips_router.settings, "DEBUG_ROUTES_ENABLED", False):
        resp = client.get("/debug/geocode", params={"lat": 35.0, "lng": 139.0})
    assert resp.status_code == 404


def test_debug_geocode_enabled():
    geocoder = MagicMock()
    geocoder.lookup.return_value = [GeocodeFeature(label="Kyoto Station", full_address="Kyoto", place_types=["poi"])]
    with patch.object(trips_router.settings, "DEBUG_ROUTES_ENABLED", True), \
            patch("api.routes.debug.get_default_geocoder", return_value=geocoder):
        resp = client.get("/debug/geocode", params={"lat": 34.985, "lng": 135.758, "locale": "en"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["query"] == "34.985000, 135.758000"
    assert body["picked"]["name"] == "Kyoto Station"
    assert body["resolved"]["address"] == "Kyoto"


@patch("services.trip_assembler.get_default_geocoder", return_value=MagicMock())
def test_generate_gives_repeated_filenames_distinct_ids(mock_geocoder):
    files = [
        ("photos", ("image.jpg", _jpeg(), "image/jpeg")),
        ("photos", ("image.jpg", _jpeg("black"), "image/jpeg")),
    ]
    with patch.object(trips_router, "generate_trip", wraps=trips_router.generate_trip) as pipeline:
        resp = client.post("/trips/generate", files=files, data={"locale": "en"})

    assert resp.status_code == 200
    ids = [photo.photo_id for photo in pipeline.call_args[0][0]]
    assert ids == ["image.jpg", "image.jpg#2"]


def test_photo_ids_are_unique():
    assert trips_router.photo_ids(["a.jpg", None, "a.jpg", "a.jpg#3", "a.jpg"]) == [
        "a.jpg", "photo-2", "a.jpg#3", "a.jpg#3#4", "a.jpg#5",
    ]
