"""
Impression tags: the "core" of a trip in a handful of words.

Looser than the scored tag set: one time-of-day tag, one movement tag, up to
two place-character tags from address keywords and one air/season tag.
"""
from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple

from domain.models import ImpressionTag, ResolvedSpot, Trip
from services.clustering import total_distance_km
from services.lexicon import LOCALE_EN, month_to_season, normalize_locale

MAX_IMPRESSION_TAGS = 5
MAX_PLACE_TAGS = 2

# bucket -> (ja label, ja reason, en label, en reason)
_TIME_LABELS: Dict[str, Tuple[str, str, str, str]] = {
    "morning": ("朝が長い", "午前の時間が多い", "Long mornings", "Mostly morning hours"),
    "day": ("光が高い時間", "昼が中心", "High sun", "Mostly midday"),
    "evening": ("夕方が濃い", "日が傾く頃", "Rich evenings", "As the sun went down"),
    "night": ("夜に寄った", "暗くなってから", "Leaning into night", "After dark"),
}

# (id, pattern, ja label, ja reason, en label, en reason)
_PLACE_RULES = [
    ("water", r"川|橋|water|river|海|湖|pond", "水の近く", "水辺の地名を検出", "Near the water", "Waterside names found"),
    ("park", r"公園|park|garden", "緑のそば", "公園の地名を検出", "Close to green", "Park names found"),
    ("station", r"駅|station", "駅の周辺", "駅周辺の移動", "Around the station", "Moving around stations"),
    ("shrine", r"寺|神社|shrine|temple", "境内", "寺社の地名を検出", "Temple grounds", "Temple or shrine names found"),
    ("cafe", r"cafe|カフェ|coffee|喫茶", "カフェ", "カフェの地名を検出", "Cafe", "Cafe names found"),
]

_AIR_LABELS = {
    "winter": ("空気が冷たい", "冬の時期", "Cold air", "Winter time"),
    "summer": ("光が強い", "夏の時期", "Strong light", "Summer time"),
    "spring": ("風がやわらかい", "春の時期", "Soft breeze", "Spring time"),
    "autumn": ("風が澄んでる", "秋の時期", "Clear wind", "Autumn time"),
}


def _pick(entry: Tuple[str, str, str, str], en: bool) -> Tuple[str, str]:
    return (entry[2], entry[3]) if en else (entry[0], entry[1])


def _time_tag(spots: Sequence[ResolvedSpot], en: bool) -> ImpressionTag:
    buckets = {"morning": 0, "day": 0, "evening": 0, "night": 0}
    for spot in spots:
        hour = spot.arrival_time.hour
        if hour < 10:
            buckets["morning"] += 1
        elif hour < 15:
            buckets["day"] += 1
        elif hour < 19:
            buckets["evening"] += 1
        else:
            buckets["night"] += 1

    # Ties go to the earlier bucket.
    top = max(buckets, key=lambda k: buckets[k])
    label, reason = _pick(_TIME_LABELS[top], en)
    suffix = f" ({buckets[top]} spots)" if en else f"（{buckets[top]}か所）"
    return ImpressionTag(id="time", category="time", label=label, reason=reason + suffix)


def _movement_tag(spots: Sequence[ResolvedSpot], en: bool) -> ImpressionTag:
    if len(spots) < 2:
        return ImpressionTag(
            id="move-stay",
            category="movement",
            label="Stayed put" if en else "留まった",
            reason="Only one spot" if en else "1箇所のみ",
        )

    km = total_distance_km([s.point for s in spots])
    reason = f"Moved {km:.1f}km" if en else f"移動距離{km:.1f}km"
    if km > 5:
        return ImpressionTag(id="move-walk", category="movement", label="Kept walking" if en else "歩き続けた", reason=reason)
    if km > 2:
        return ImpressionTag(id="move-tour", category="movement", label="Made the rounds" if en else "巡った", reason=reason)
    return ImpressionTag(id="move-stay", category="movement", label="Stayed put" if en else "留まった", reason=reason)


def _place_tags(spots: Sequence[ResolvedSpot], en: bool) -> List[ImpressionTag]:
    text = " ".join(f"{s.name} {s.address}" for s in spots)
    tags: List[ImpressionTag] = []
    for tag_id, pattern, ja_label, ja_reason, en_label, en_reason in _PLACE_RULES:
        if re.search(pattern, text, flags=re.IGNORECASE):
            label, reason = (en_label, en_reason) if en else (ja_label, ja_reason)
            tags.append(ImpressionTag(id=tag_id, category="place", label=label, reason=reason))

    if not tags:
        tags.append(ImpressionTag(
            id="city",
            category="place",
            label="In the city" if en else "街の中",
            reason="Urban spots" if en else "都市部のスポット",
        ))
    return tags[:MAX_PLACE_TAGS]


def _air_tag(trip: Trip, en: bool) -> ImpressionTag:
    season = month_to_season(trip.start_date.month)
    label, reason = _pick(_AIR_LABELS[season], en)
    return ImpressionTag(id=f"air-{season}", category="air", label=label, reason=reason)


def generate_impression_tags(trip: Trip, locale: str) -> List[ImpressionTag]:
    """Up to five impression tags; empty when the trip has no spots."""
    if not trip.spots:
        return []
    en = normalize_locale(locale) == LOCALE_EN
    tags = [_time_tag(trip.spots, en), _movement_tag(trip.spots, en)]
    tags.extend(_place_tags(trip.spots, en))
    tags.append(_air_tag(trip, en))
    return tags[:MAX_IMPRESSION_TAGS]
