import threading
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from domain.errors import GeocodingError, TripGenerationError
from domain.models import ContextEntry, GeocodeFeature, PhotoInput, ProgressStep, TagCategory
from services.place_resolver import PlaceResolver
from services.trip_assembler import generate_trip, generate_trip_title

T0 = datetime(2024, 10, 12, 9, 0, 0)


def _photo(pid: str, minutes: float, lat=None, lng=None) -> PhotoInput:
    meta = {"DateTimeOriginal": (T0 + timedelta(minutes=minutes)).strftime("%Y:%m:%d %H:%M:%S")}
    if lat is not None:
        meta.update({"latitude": lat, "longitude": lng})
    return PhotoInput(photo_id=pid, file_modified_at=T0, metadata=meta)


def _kyoto_lookup():
    lookup = MagicMock()

    def _lookup(lat, lng, locale):
        name = "清水寺" if lat < 35.0 else "京都駅"
        return [GeocodeFeature(
            label=name,
            full_address=f"日本、京都府京都市東山区 {name}",
            place_types=["poi"],
            context=[ContextEntry("place.1", "京都市"), ContextEntry("region.2", "京都府")],
        )]

    lookup.lookup.side_effect = _lookup
    return lookup


TWO_WALKS = [
    _photo("a1", 0, 34.9949, 135.7850),
    _photo("a2", 10, 34.9950, 135.7851),
    _photo("b1", 120, 35.0116, 135.7681),
    _photo("b2", 125, 35.0117, 135.7682),
    _photo("x", 60),
]


def test_empty_input_raises():
    with pytest.raises(TripGenerationError):
        generate_trip([], "ja", resolver=PlaceResolver(MagicMock()))


def test_generates_trip_from_two_walks():
    result = generate_trip(TWO_WALKS, "ja", resolver=PlaceResolver(_kyoto_lookup()))
    trip = result.trip

    assert trip.id.startswith("trip-")
    assert [s.name for s in trip.spots] == ["清水寺", "京都駅"]
    assert trip.location == "京都府"
    assert trip.title == "京都府・10月の旅"
    assert trip.start_date == trip.end_date == date(2024, 10, 12)
    assert trip.photo_count == 5
    assert trip.spot_count == 2
    assert trip.cover_photo_id == "a1"
    assert result.warnings == []
    assert result.cancelled is False

    assert len(result.tags) == 5
    assert {t.category for t in result.tags} == set(TagCategory)
    assert trip.tags == result.tags
    assert 1 <= len(trip.title_suggestions) <= 3
    assert result.impression_tags


def test_location_falls_back_to_address_region_then_city():
    lookup = MagicMock()
    lookup.lookup.return_value = [GeocodeFeature(label="Spot", full_address="日本、大阪府大阪市北区", place_types=["poi"])]
    result = generate_trip(TWO_WALKS[:2], "ja", resolver=PlaceResolver(lookup))
    assert result.trip.location == "大阪府"

    lookup.lookup.return_value = [GeocodeFeature(label="Spot", full_address="Main St", place_types=["poi"],
                                                 context=[ContextEntry("place.1", "Springfield")])]
    result = generate_trip(TWO_WALKS[:2], "en", resolver=PlaceResolver(lookup))
    assert result.trip.location == "Springfield"
    assert result.trip.title == "Springfield trip in October"


def test_no_gps_photos():
    photos = [_photo("p1", 0), _photo("p2", 90)]
    result = generate_trip(photos, "en", resolver=PlaceResolver(MagicMock()))
    assert result.trip.spots == []
    assert result.trip.location == "Unknown"
    assert result.trip.title == "Travel record"
    assert result.trip.cover_photo_id is None
    assert result.impression_tags == []
    assert len(result.tags) == 5
    assert result.warnings == ["No location data found. Did you mean to add locations manually?"]


def test_low_gps_ratio_warning():
    photos = [_photo("g", 0, 35.0, 135.0)] + [_photo(f"n{i}", i) for i in range(1, 5)]
    result = generate_trip(photos, "en", resolver=PlaceResolver(_kyoto_lookup()))
    assert "Many photos have no GPS data. (1/5 photos)" in result.warnings


def test_lookup_failure_keeps_spot_with_coordinates():
    lookup = MagicMock()
    lookup.lookup.side_effect = GeocodingError("down")
    result = generate_trip(TWO_WALKS[:2], "ja", resolver=PlaceResolver(lookup))
    spot = result.trip.spots[0]
    assert spot.name == "不明なスポット"
    assert spot.address.startswith("34.99")
    assert result.trip.location == "不明"
    assert result.trip.title == "旅の記録"


def test_unsupported_locale_is_japanese():
    result = generate_trip(TWO_WALKS, "de", resolver=PlaceResolver(_kyoto_lookup()))
    assert result.trip.title == "京都府・10月の旅"


def test_progress_is_reported_in_order():
    events = []
    generate_trip(TWO_WALKS, "en", resolver=PlaceResolver(_kyoto_lookup()), on_progress=events.append)
    steps = [e.step for e in events]
    assert steps[0] == ProgressStep.EXTRACTING
    assert steps[-1] == ProgressStep.COMPLETE
    assert events[-1].progress == 100
    values = [e.progress for e in events]
    assert values == sorted(values)
    assert events[-1].message == "Done"


def test_cancelled_run_returns_partial_trip():
    event = threading.Event()
    event.set()
    result = generate_trip(TWO_WALKS, "en", resolver=PlaceResolver(_kyoto_lookup()), cancel_event=event)
    assert result.cancelled is True
    assert result.trip.spots == []
    assert "Generation was interrupted; only some spots were created." in result.warnings


def test_generate_trip_title():
    result = generate_trip(TWO_WALKS, "ja", resolver=PlaceResolver(_kyoto_lookup()))
    assert generate_trip_title(result.trip.spots, result.trip.start_date, "ja") == "京都府・秋の旅"
    assert generate_trip_title([], date(2024, 1, 1), "en") == "Travel record"
