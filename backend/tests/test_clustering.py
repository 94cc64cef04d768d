from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from domain.models import GeoPoint, PhotoRecord
from services.clustering import (
    cluster_photos,
    compute_centroid,
    haversine_m,
    total_distance_km,
)

T0 = datetime(2024, 5, 3, 10, 0, 0)


def _photo(pid: str, minutes: float, lat=None, lng=None) -> PhotoRecord:
    location = GeoPoint(lat, lng) if lat is not None else None
    return PhotoRecord(id=pid, captured_at=T0 + timedelta(minutes=minutes), location=location)


def test_haversine_known_distance():
    # One degree of latitude is ~111.2 km.
    d = haversine_m(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))
    assert d == pytest.approx(111_195, rel=1e-3)


def test_haversine_zero():
    p = GeoPoint(35.0, 139.0)
    assert haversine_m(p, p) == 0.0


def test_compute_centroid_basic():
    c = compute_centroid([GeoPoint(0.0, 0.0), GeoPoint(2.0, 4.0)])
    assert c == GeoPoint(1.0, 2.0)


def test_compute_centroid_empty():
    assert compute_centroid([]) is None


def test_total_distance_km():
    pts = [GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0), GeoPoint(1.0, 0.0)]
    assert total_distance_km(pts) == pytest.approx(111.195, rel=1e-3)
    assert total_distance_km(pts[:1]) == 0.0


def test_no_geotagged_photos_yields_no_clusters():
    photos = [_photo("a", 0), _photo("b", 5)]
    assert cluster_photos(photos) == []


def test_non_geotagged_photos_are_excluded():
    photos = [_photo("a", 0, 35.0, 139.0), _photo("b", 1), _photo("c", 2, 35.0, 139.0)]
    clusters = cluster_photos(photos)
    assert len(clusters) == 1
    assert clusters[0].member_ids == ["a", "c"]


def test_photos_are_sorted_by_time():
    photos = [_photo("late", 20, 35.0, 139.0), _photo("early", 0, 35.0, 139.0)]
    clusters = cluster_photos(photos)
    assert clusters[0].member_ids == ["early", "late"]
    assert clusters[0].arrival_time == T0
    assert clusters[0].departure_time == T0 + timedelta(minutes=20)


def test_equal_timestamps_keep_input_order():
    photos = [_photo("b", 0, 35.0, 139.0), _photo("a", 0, 35.0, 139.0)]
    assert cluster_photos(photos)[0].member_ids == ["b", "a"]


def test_time_gap_exactly_threshold_stays_together():
    photos = [_photo("a", 0, 35.0, 139.0), _photo("b", 30, 35.0, 139.0)]
    assert len(cluster_photos(photos)) == 1


def test_time_gap_over_threshold_splits():
    photos = [_photo("a", 0, 35.0, 139.0), _photo("b", 30.5, 35.0, 139.0)]
    clusters = cluster_photos(photos)
    assert [c.member_ids for c in clusters] == [["a"], ["b"]]


def test_distance_exactly_threshold_stays_together():
    photos = [_photo("a", 0, 35.0, 139.0), _photo("b", 1, 35.0, 139.001)]
    with patch("services.clustering.haversine_m", return_value=200.0):
        assert len(cluster_photos(photos)) == 1


def test_distance_over_threshold_splits():
    photos = [_photo("a", 0, 35.0, 139.0), _photo("b", 1, 35.0, 139.001)]
    with patch("services.clustering.haversine_m", return_value=200.1):
        assert len(cluster_photos(photos)) == 2


def test_centroid_is_mean_of_members():
    photos = [
        _photo("a", 0, 35.000, 139.000),
        _photo("b", 1, 35.001, 139.001),
        _photo("c", 2, 35.002, 139.002),
    ]
    clusters = cluster_photos(photos)
    assert len(clusters) == 1
    assert clusters[0].centroid.lat == pytest.approx(35.001)
    assert clusters[0].centroid.lng == pytest.approx(139.001)


def test_distance_is_measured_from_centroid():
    # The third photo is ~211 m from the first but ~136 m from the centroid
    # of the first two, so it joins.
    photos = [
        _photo("a", 0, 35.0000, 139.0),
        _photo("b", 1, 35.00135, 139.0),
        _photo("c", 2, 35.00190, 139.0),
    ]
    clusters = cluster_photos(photos)
    assert len(clusters) == 1


def test_two_walks_end_to_end():
    # Three photos within 50 m over 12 minutes, then three ~5 km north two hours later.
    photos = [
        _photo("a3", 132, 35.7348, 139.6917),
        _photo("s1", 0, 35.6895, 139.6917),
        _photo("s2", 5, 35.6896, 139.6918),
        _photo("s3", 12, 35.6897, 139.6916),
        _photo("a1", 120, 35.7345, 139.6917),
        _photo("a2", 126, 35.7346, 139.6918),
    ]
    clusters = cluster_photos(photos)
    assert [c.id for c in clusters] == ["cluster-1", "cluster-2"]
    assert [c.member_ids for c in clusters] == [["s1", "s2", "s3"], ["a1", "a2", "a3"]]
    assert clusters[0].centroid.lat == pytest.approx(35.6896)
    assert clusters[1].photo_count == 3
    assert clusters[0].arrival_time == T0
    assert clusters[0].departure_time == T0 + timedelta(minutes=12)
    assert clusters[1].arrival_time == T0 + timedelta(minutes=120)


def test_clustering_is_deterministic():
    photos = [_photo(f"p{i}", i * 7, 35.0 + (i % 3) * 0.002, 139.0) for i in range(12)]
    assert cluster_photos(photos) == cluster_photos(list(photos))


def test_custom_thresholds():
    photos = [_photo("a", 0, 35.0, 139.0), _photo("b", 10, 35.0, 139.0)]
    assert len(cluster_photos(photos, time_threshold_min=5)) == 2


def test_three_point_centroid_longitude():
    photos = [
        _photo("a", 0, 0.0, 0.0),
        _photo("b", 1, 0.0, 0.002),
        _photo("c", 2, 0.0, 0.004),
    ]
    clusters = cluster_photos(photos, distance_threshold_m=1000)
    assert len(clusters) == 1
    assert clusters[0].centroid.lng == pytest.approx(0.002)
