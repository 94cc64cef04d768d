"""
Trip tag synthesis.

Always returns five tags, one per category (place, season, time, motion,
mood), picked from deterministic heuristic candidates. No model calls: only
the trip location, its first spot, the start month and a few photo-level
signals.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
import math

from domain.models import TAG_CATEGORIES, Tag, TagCategory, Trip
from services.geocoding import extract_region_token
from services import lexicon

TAG_SET_SIZE = 5

# Used for the motion proxy when no GPS ratio is known.
DEFAULT_GPS_RATIO_PROXY = 0.2
WANDERED_GPS_RATIO = 0.6
LOW_GPS_RATIO = 0.3


@dataclass
class TagSignals:
    location: str = ""
    first_spot_name: str = ""
    first_spot_address: str = ""
    start_month: Optional[int] = None  # 1..12
    photo_timestamps: Optional[Sequence[datetime]] = None
    gps_ratio: Optional[float] = None  # 0..1
    distance_km: Optional[float] = None
    is_likely_bright: Optional[bool] = None
    locale: str = lexicon.LOCALE_JA

    @classmethod
    def from_trip(
        cls,
        trip: Trip,
        locale: str,
        photo_timestamps: Optional[Sequence[datetime]] = None,
        gps_ratio: Optional[float] = None,
        distance_km: Optional[float] = None,
        is_likely_bright: Optional[bool] = None,
    ) -> "TagSignals":
        first = trip.spots[0] if trip.spots else None
        return cls(
            location=trip.location or "",
            first_spot_name=first.name if first else "",
            first_spot_address=first.address if first else "",
            start_month=trip.start_date.month if trip.start_date else None,
            photo_timestamps=photo_timestamps,
            gps_ratio=gps_ratio,
            distance_km=distance_km,
            is_likely_bright=is_likely_bright,
            locale=locale,
        )


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _place_candidates(signals: TagSignals) -> List[Tag]:
    locale = signals.locale
    tags: List[Tag] = []
    loc = (signals.location or "").strip()
    if loc and not lexicon.is_unknown_location(loc):
        tags.append(Tag.make(TagCategory.PLACE, loc, 0.95, "trip.location"))

    region = extract_region_token(signals.first_spot_address)
    if region and not lexicon.is_unknown_location(region):
        tags.append(Tag.make(TagCategory.PLACE, region, 0.9, "region from first spot address"))

    name = (signals.first_spot_name or "").strip()
    if name and not lexicon.is_unknown_spot_name(name):
        tags.append(Tag.make(TagCategory.PLACE, name, 0.82, "first spot name"))

    tags.append(Tag.make(TagCategory.PLACE, lexicon.sentinels_for(locale).unknown_place_tag, 0.35, "fallback"))
    return tags


def _season_candidates(signals: TagSignals) -> List[Tag]:
    locale = signals.locale
    month = signals.start_month
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        return [Tag.make(TagCategory.SEASON, lexicon.season_fallback_label(locale), 0.4, "fallback")]

    season = lexicon.month_to_season(month)
    tags = [Tag.make(TagCategory.SEASON, lexicon.season_tag_label(season, locale), 0.9, "month to season")]
    nuance = lexicon.season_nuance_label(season, locale)
    if nuance:
        tags.append(Tag.make(TagCategory.SEASON, nuance, 0.75, f"{season} nuance"))
    return tags


def _time_candidates(signals: TagSignals) -> List[Tag]:
    locale = signals.locale
    stamps = list(signals.photo_timestamps or [])
    if not stamps:
        return [Tag.make(TagCategory.TIME, lexicon.time_fallback_label(locale), 0.4, "fallback")]
    avg_hour = sum(ts.hour for ts in stamps) / len(stamps)
    label = lexicon.time_tag_label(_round_half_up(avg_hour), locale)
    return [Tag.make(TagCategory.TIME, label, 0.85, "mean photo hour")]


def _motion_candidates(signals: TagSignals) -> List[Tag]:
    locale = signals.locale
    if _is_number(signals.distance_km):
        km = float(signals.distance_km)
        return [
            Tag.make(TagCategory.MOTION, lexicon.distance_to_motion_label(km, locale), 0.85, "distance km"),
            Tag.make(TagCategory.MOTION, lexicon.distance_numeric_label(km, locale), 0.55, "distance km numeric"),
        ]

    # More geotagged photos hints at more movement.
    proxy = signals.gps_ratio if _is_number(signals.gps_ratio) else DEFAULT_GPS_RATIO_PROXY
    if proxy >= WANDERED_GPS_RATIO:
        return [Tag.make(TagCategory.MOTION, lexicon.gps_proxy_motion_label(True, locale), 0.65, "gps ratio proxy")]
    return [Tag.make(TagCategory.MOTION, lexicon.gps_proxy_motion_label(False, locale), 0.55, "gps ratio proxy")]


def _mood_candidates(signals: TagSignals) -> List[Tag]:
    locale = signals.locale
    tags: List[Tag] = []
    if isinstance(signals.is_likely_bright, bool):
        label = lexicon.sunlight_to_mood_label(signals.is_likely_bright, locale)
        tags.append(Tag.make(TagCategory.MOOD, label, 0.75, "brightness heuristic"))
    else:
        first, second = lexicon.default_mood_labels(locale)
        tags.append(Tag.make(TagCategory.MOOD, first, 0.6, "default mood"))
        tags.append(Tag.make(TagCategory.MOOD, second, 0.55, "default mood"))

    if _is_number(signals.gps_ratio) and signals.gps_ratio < LOW_GPS_RATIO:
        tags.append(Tag.make(TagCategory.MOOD, lexicon.uncertain_journey_label(locale), 0.55, "low gps ratio"))
    return tags


def build_tag_candidates(signals: TagSignals) -> List[Tag]:
    """All scored candidates, deduplicated by id and sorted best first."""
    candidates = (
        _place_candidates(signals)
        + _season_candidates(signals)
        + _time_candidates(signals)
        + _motion_candidates(signals)
        + _mood_candidates(signals)
    )
    cleaned = lexicon.uniq_by(candidates, lambda t: t.id)
    return sorted(cleaned, key=lambda t: t.score, reverse=True)


def _pick_top_by_category(tags: Sequence[Tag], category: TagCategory) -> Optional[Tag]:
    for tag in tags:
        if tag.category == category:
            return tag
    return None


def _next_best_not_in(tags: Sequence[Tag], selected: Sequence[Tag]) -> Optional[Tag]:
    selected_ids = {t.id for t in selected}
    selected_categories = {t.category for t in selected}
    remaining = [t for t in tags if t.id not in selected_ids]
    # Prefer a category that is still missing before doubling one up.
    for tag in remaining:
        if tag.category not in selected_categories:
            return tag
    return remaining[0] if remaining else None


def select_tags(candidates: Sequence[Tag]) -> List[Tag]:
    """
    Pick the top candidate per category, backfill to five if a category had
    nothing, then order by score.

    `candidates` must already be sorted best first.
    """
    selected: List[Tag] = []
    for category in TAG_CATEGORIES:
        top = _pick_top_by_category(candidates, category)
        if top is not None:
            selected.append(top)

    while len(selected) < TAG_SET_SIZE:
        nxt = _next_best_not_in(candidates, selected)
        if nxt is None:
            break
        selected.append(nxt)

    selected.sort(key=lambda t: t.score, reverse=True)
    return selected[:TAG_SET_SIZE]


def synthesize_tags(signals: TagSignals) -> List[Tag]:
    """Return exactly five tags covering place, season, time, motion and mood."""
    return select_tags(build_tag_candidates(signals))
