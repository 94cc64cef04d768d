"""
Trip generation pipeline.

Pipeline stages:
1. Extract metadata from every photo
2. Check GPS coverage
3. Cluster geotagged photos into spots (200 m / 30 min)
4. Resolve spot names in batches
5. Assemble the trip: date range, location, title
6. Synthesize tags, title suggestions and impression tags

Non-fatal problems are collected as warnings; only a request that cannot
produce any trip at all raises.
"""
from __future__ import annotations

from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import threading

from domain.errors import TripGenerationError
from domain.models import (
    GenerationProgress,
    PhotoInput,
    PhotoRecord,
    ProgressStep,
    ResolvedSpot,
    Trip,
    TripGenerationResult,
)
from services import lexicon
from services.clustering import cluster_photos, total_distance_km
from services.geocoding import extract_region_token, get_default_geocoder
from services.impression_tags import generate_impression_tags
from services.metadata_extractor import extract_photo_record, record_from_metadata
from services.photo_brightness import is_likely_bright
from services.place_resolver import PlaceResolver
from services.tag_engine import TagSignals, synthesize_tags
from services.title_engine import REQUIRED_TAG_COUNT, synthesize_titles
from settings import settings

logger = logging.getLogger(__name__)

LOW_GPS_RATIO_WARNING = 0.3

ProgressCallback = Callable[[GenerationProgress], None]


def _report(on_progress: Optional[ProgressCallback], step: ProgressStep, progress: float, locale: str) -> None:
    if on_progress is None:
        return
    on_progress(GenerationProgress(step=step, progress=progress, message=lexicon.progress_text(step.value, locale)))


def extract_records(
    photos: Sequence[PhotoInput],
    on_progress: Optional[ProgressCallback] = None,
    locale: str = lexicon.LOCALE_JA,
) -> List[PhotoRecord]:
    """Extract one PhotoRecord per input, in input order."""
    records: List[PhotoRecord] = []
    for i, photo in enumerate(photos):
        if photo.data is not None:
            record = extract_photo_record(photo.photo_id, photo.data, photo.file_modified_at)
        else:
            record = record_from_metadata(photo.photo_id, photo.metadata or {}, photo.file_modified_at)
        records.append(record)
        _report(on_progress, ProgressStep.EXTRACTING, 10 + (i + 1) / len(photos) * 20, locale)
    return records


def gps_coverage_warnings(records: Sequence[PhotoRecord], locale: str) -> List[str]:
    gps_count = sum(1 for r in records if r.has_location)
    if gps_count == 0:
        return [lexicon.warning_text("no_gps", locale)]
    if gps_count < len(records) * LOW_GPS_RATIO_WARNING:
        return [lexicon.warning_text("low_gps", locale, gps=gps_count, total=len(records))]
    return []


def derive_location(spots: Sequence[ResolvedSpot], locale: str) -> str:
    """
    Coarse trip location from the first spot: its region, else a region token
    parsed from its address, else its city, else the unknown sentinel.
    """
    unknown = lexicon.sentinels_for(locale).unknown_location
    if not spots:
        return unknown
    first = spots[0]
    if first.region and first.region.strip():
        return first.region.strip()
    extracted = extract_region_token(first.address)
    if extracted:
        return extracted
    return first.place.strip() if first.place and first.place.strip() else unknown


def derive_title(location: str, start_date: date, locale: str) -> str:
    if location and not lexicon.is_unknown_location(location):
        return lexicon.month_trip_title(location, start_date.month, locale)
    return lexicon.sentinels_for(locale).default_trip_title


def generate_trip_title(spots: Sequence[ResolvedSpot], start_date: date, locale: str) -> str:
    """Alternative "<prefecture>・<season>の旅" title for renaming a trip."""
    if not spots:
        return lexicon.sentinels_for(locale).default_trip_title
    region = extract_region_token(spots[0].address) or spots[0].region or spots[0].place
    if not region:
        return lexicon.sentinels_for(locale).default_trip_title
    return lexicon.season_trip_title(region, lexicon.month_to_season(start_date.month), locale)


def date_range(records: Sequence[PhotoRecord]) -> Tuple[date, date]:
    stamps = sorted(r.captured_at for r in records)
    return stamps[0].date(), stamps[-1].date()


def generate_trip(
    photos: Sequence[PhotoInput],
    locale: Optional[str] = None,
    resolver: Optional[PlaceResolver] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> TripGenerationResult:
    """
    Generate a trip from a batch of photos.

    Args:
        photos: Input photos (bytes or pre-extracted metadata).
        locale: "ja" or "en"; controls labels and warnings.
        resolver: Place resolver; defaults to one backed by Mapbox.
        on_progress: Optional callback for progress reporting.
        cancel_event: When set, in-flight resolution stops and the partial
            trip is returned with `cancelled=True`.

    Raises:
        TripGenerationError: if no photos were supplied.
    """
    if not photos:
        raise TripGenerationError("no photos supplied")

    loc = lexicon.normalize_locale(locale or settings.DEFAULT_LOCALE)
    resolver = resolver or PlaceResolver(get_default_geocoder())
    warnings: List[str] = []

    # 1. Extract
    _report(on_progress, ProgressStep.EXTRACTING, 10, loc)
    records = extract_records(photos, on_progress, loc)

    # 2. GPS coverage
    warnings.extend(gps_coverage_warnings(records, loc))
    gps_count = sum(1 for r in records if r.has_location)
    gps_ratio = gps_count / len(records)

    # 3. Cluster
    _report(on_progress, ProgressStep.CLUSTERING, 40, loc)
    clusters = cluster_photos(records, settings.CLUSTER_DISTANCE_M, settings.CLUSTER_TIME_MIN)
    # Without any GPS the no_gps warning already covers empty clusters and spots.
    if not clusters and gps_count:
        warnings.append(lexicon.warning_text("no_clusters", loc))

    # 4. Resolve
    _report(on_progress, ProgressStep.GEOCODING, 60, loc)

    def _batch_done(done: int, total: int) -> None:
        _report(on_progress, ProgressStep.GEOCODING, 60 + done / total * 20, loc)

    logger.info("Starting geocoding for %d clusters", len(clusters))
    spots, resolve_warnings, cancelled = resolver.resolve_many(
        clusters, loc, cancel_event=cancel_event, on_batch_done=_batch_done
    )
    warnings.extend(resolve_warnings)
    if cancelled:
        warnings.append(lexicon.warning_text("cancelled", loc))

    # 5. Assemble
    _report(on_progress, ProgressStep.GENERATING, 90, loc)
    if not spots:
        logger.warning("No spots were generated")
        if gps_count:
            warnings.append(lexicon.warning_text("no_spots", loc))

    start_date, end_date = date_range(records)
    location = derive_location(spots, loc)
    title = derive_title(location, start_date, loc)
    logger.info("Generated title %r for location %r", title, location)

    trip = Trip(
        id=Trip.generate_id(),
        title=title,
        location=location,
        start_date=start_date,
        end_date=end_date,
        spots=list(spots),
        photo_count=len(photos),
        cover_photo_id=spots[0].representative_photo_id if spots else None,
    )

    # 6. Tags and titles
    signals = TagSignals.from_trip(
        trip,
        loc,
        photo_timestamps=[r.captured_at for r in records],
        gps_ratio=gps_ratio,
        distance_km=total_distance_km([s.point for s in spots]) if len(spots) >= 2 else None,
        is_likely_bright=is_likely_bright((r.brightness for r in records), settings.BRIGHTNESS_THRESHOLD),
    )
    tags = synthesize_tags(signals)
    trip.tags = tags
    trip.title_suggestions = synthesize_titles(tags[:REQUIRED_TAG_COUNT], loc)
    impression = generate_impression_tags(trip, loc)

    _report(on_progress, ProgressStep.COMPLETE, 100, loc)
    return TripGenerationResult(
        trip=trip,
        warnings=warnings,
        tags=tags,
        impression_tags=impression,
        cancelled=cancelled,
    )
