"""
Spatio-temporal clustering of photos into spots.

A single greedy pass over the time-ordered, geotagged photos: a photo joins
the current spot unless it is too far from the spot's centroid or too long
after the previous photo.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence
import logging
import math

from domain.models import Cluster, GeoPoint, PhotoRecord

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0
DEFAULT_DISTANCE_THRESHOLD_M = 200.0
DEFAULT_TIME_THRESHOLD_MIN = 30.0


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters between two points."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlmb = math.radians(b.lng - a.lng)
    h = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def compute_centroid(points: Iterable[GeoPoint]) -> Optional[GeoPoint]:
    """Arithmetic mean of a collection of points (None when empty)."""
    pts = list(points)
    if not pts:
        return None
    lat_sum = 0.0
    lng_sum = 0.0
    for p in pts:
        lat_sum += p.lat
        lng_sum += p.lng
    return GeoPoint(lat_sum / len(pts), lng_sum / len(pts))


def total_distance_km(points: Sequence[GeoPoint]) -> float:
    """Sum of consecutive haversine legs, in kilometers."""
    total = 0.0
    for prev, cur in zip(points, points[1:]):
        total += haversine_m(prev, cur)
    return total / 1000.0


def cluster_photos(
    photos: Sequence[PhotoRecord],
    distance_threshold_m: float = DEFAULT_DISTANCE_THRESHOLD_M,
    time_threshold_min: float = DEFAULT_TIME_THRESHOLD_MIN,
) -> List[Cluster]:
    """
    Group photos into spots.

    Only photos with a location take part. Photos are stable-sorted by
    capture time; a new spot starts when the next photo is more than
    `distance_threshold_m` from the current centroid or more than
    `time_threshold_min` after the previous photo. Both comparisons are
    strict, so a photo exactly on the threshold stays in the current spot.

    Returns spots in time order with ids cluster-1, cluster-2, ...; an empty
    list when no photo is geotagged.
    """
    candidates = [p for p in photos if p.location is not None]
    if not candidates:
        return []

    ordered = sorted(candidates, key=lambda p: p.captured_at)

    groups: List[List[PhotoRecord]] = [[ordered[0]]]
    center = ordered[0].location
    for prev, photo in zip(ordered, ordered[1:]):
        distance = haversine_m(center, photo.location)
        gap_min = (photo.captured_at - prev.captured_at).total_seconds() / 60.0

        if distance > distance_threshold_m or gap_min > time_threshold_min:
            groups.append([photo])
            center = photo.location
        else:
            groups[-1].append(photo)
            # Full recompute keeps the centroid the exact mean of the members.
            center = compute_centroid(p.location for p in groups[-1])

    clusters = [_build_cluster(group, index) for index, group in enumerate(groups)]
    logger.debug(
        "Clustered %d geotagged photos (of %d) into %d spots",
        len(ordered),
        len(photos),
        len(clusters),
    )
    return clusters


def _build_cluster(group: List[PhotoRecord], index: int) -> Cluster:
    centroid = compute_centroid(p.location for p in group)
    times = [p.captured_at for p in group]
    return Cluster(
        id=f"cluster-{index + 1}",
        centroid=centroid,
        arrival_time=min(times),
        departure_time=max(times),
        member_ids=[p.id for p in group],
    )
