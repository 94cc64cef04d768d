from datetime import date, datetime

from domain.models import ResolvedSpot, Trip
from services.impression_tags import generate_impression_tags


def _spot(i: int, hour: int, name: str = "Spot", address: str = "", lat: float = 35.0, lng: float = 139.0) -> ResolvedSpot:
    t = datetime(2024, 1, 10, hour, 0, 0)
    return ResolvedSpot(
        id=f"cluster-{i}", name=name, address=address, lat=lat, lng=lng,
        arrival_time=t, departure_time=t, member_ids=[f"p{i}"],
    )


def _trip(spots, month=1) -> Trip:
    return Trip(
        id="trip-1", title="t", location="Tokyo",
        start_date=date(2024, month, 10), end_date=date(2024, month, 10), spots=spots,
    )


def test_no_spots_no_tags():
    assert generate_impression_tags(_trip([]), "ja") == []


def test_single_spot_ja():
    tags = generate_impression_tags(_trip([_spot(1, 8, "上野公園", "東京都台東区上野公園")]), "ja")
    by_id = {t.id: t for t in tags}
    assert by_id["time"].label == "朝が長い"
    assert by_id["move-stay"].reason == "1箇所のみ"
    assert by_id["park"].label == "緑のそば"
    assert by_id["air-winter"].label == "空気が冷たい"
    assert len(tags) <= 5


def test_time_bucket_majority():
    spots = [_spot(1, 20), _spot(2, 21), _spot(3, 11)]
    time_tag = generate_impression_tags(_trip(spots), "en")[0]
    assert time_tag.label == "Leaning into night"
    assert "(2 spots)" in time_tag.reason


def test_movement_by_distance():
    # ~11 km apart
    far = [_spot(1, 10, lat=35.0), _spot(2, 11, lat=35.1)]
    near = [_spot(1, 10, lat=35.0), _spot(2, 11, lat=35.001)]
    mid = [_spot(1, 10, lat=35.0), _spot(2, 11, lat=35.03)]
    assert {t.id for t in generate_impression_tags(_trip(far), "en")} >= {"move-walk"}
    assert {t.id for t in generate_impression_tags(_trip(near), "en")} >= {"move-stay"}
    assert {t.id for t in generate_impression_tags(_trip(mid), "en")} >= {"move-tour"}


def test_place_tags_capped_at_two():
    spots = [_spot(1, 10, "Kamo River Cafe", "Kyoto Station, near the shrine")]
    place_tags = [t for t in generate_impression_tags(_trip(spots), "en") if t.category == "place"]
    assert [t.id for t in place_tags] == ["water", "station"]


def test_city_fallback():
    place_tags = [t for t in generate_impression_tags(_trip([_spot(1, 10, "Plaza", "Main St")]), "en") if t.category == "place"]
    assert [t.id for t in place_tags] == ["city"]


def test_air_follows_season():
    tags = generate_impression_tags(_trip([_spot(1, 10)], month=7), "en")
    assert tags[-1].id == "air-summer"
    assert tags[-1].label == "Strong light"
