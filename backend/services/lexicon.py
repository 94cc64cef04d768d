"""
Trip lexicon: turns machine-ish signals (month, hour, km, brightness) into
human-ish phrases, plus the per-locale sentinel strings used across the
pipeline.

Only "ja" and "en" are supported; anything that is not English falls back to
Japanese, which is the product's primary language.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, TypeVar

T = TypeVar("T")

LOCALE_JA = "ja"
LOCALE_EN = "en"


def normalize_locale(locale: str | None) -> str:
    if locale and locale.strip().lower().startswith("en"):
        return LOCALE_EN
    return LOCALE_JA


@dataclass(frozen=True)
class Sentinels:
    unknown_spot: str
    invalid_coordinates: str
    unknown_location: str
    default_trip_title: str
    unknown_place_tag: str
    default_poetic: str
    default_motion_phrase: str


SENTINELS: Dict[str, Sentinels] = {
    LOCALE_JA: Sentinels(
        unknown_spot="不明なスポット",
        invalid_coordinates="座標が不正です",
        unknown_location="不明",
        default_trip_title="旅の記録",
        unknown_place_tag="どこかの街角",
        default_poetic="旅の記憶",
        default_motion_phrase="ふらりと歩く",
    ),
    LOCALE_EN: Sentinels(
        unknown_spot="Unknown Spot",
        invalid_coordinates="Invalid coordinates",
        unknown_location="Unknown",
        default_trip_title="Travel record",
        unknown_place_tag="Somewhere in town",
        default_poetic="travel memories",
        default_motion_phrase="wandering",
    ),
}


def sentinels_for(locale: str | None) -> Sentinels:
    return SENTINELS[normalize_locale(locale)]


def is_unknown_spot_name(name: str | None) -> bool:
    """True for the unknown-spot sentinel in any locale."""
    return any(name == s.unknown_spot for s in SENTINELS.values())


def is_unknown_location(location: str | None) -> bool:
    return any(location == s.unknown_location for s in SENTINELS.values())


# ---- Season helpers ----

_SEASON_LABELS = {
    LOCALE_JA: {"winter": "冬", "spring": "春", "summer": "夏", "autumn": "秋"},
    LOCALE_EN: {"winter": "Winter", "spring": "Spring", "summer": "Summer", "autumn": "Autumn"},
}


def month_to_season(month: int) -> str:
    """Map a 1..12 month to winter/spring/summer/autumn."""
    if month == 12 or month <= 2:
        return "winter"
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    return "autumn"


def season_label(season: str, locale: str | None) -> str:
    return _SEASON_LABELS[normalize_locale(locale)][season]


def season_tag_label(season: str, locale: str | None) -> str:
    label = season_label(season, locale)
    if normalize_locale(locale) == LOCALE_EN:
        return f"{label} trip"
    return f"{label}の旅"


def season_nuance_label(season: str, locale: str | None) -> str | None:
    nuances = {
        LOCALE_JA: {"summer": "盛夏", "winter": "冬の空気"},
        LOCALE_EN: {"summer": "Midsummer", "winter": "Winter air"},
    }
    return nuances[normalize_locale(locale)].get(season)


def season_fallback_label(locale: str | None) -> str:
    return "Seasonal vibes" if normalize_locale(locale) == LOCALE_EN else "季節の気配"


# ---- Time-of-day to poetic labels ----

def hour_to_time_label(hour: int, locale: str | None) -> str:
    en = normalize_locale(locale) == LOCALE_EN
    if hour < 6:
        return "Late night" if en else "夜更け"
    if hour < 10:
        return "Morning" if en else "朝"
    if hour < 12:
        return "Late morning" if en else "午前"
    if hour < 15:
        return "Early afternoon" if en else "昼下がり"
    if hour < 18:
        return "Afternoon" if en else "午後"
    if hour < 21:
        return "Evening" if en else "夕方"
    return "Night" if en else "夜"


def time_tag_label(hour: int, locale: str | None) -> str:
    label = hour_to_time_label(hour, locale)
    if normalize_locale(locale) == LOCALE_EN:
        return f"{label} hours"
    return f"{label}の時間"


def time_fallback_label(locale: str | None) -> str:
    return "A day's moments" if normalize_locale(locale) == LOCALE_EN else "ある日の時間"


# ---- Motion mapping ----

def distance_to_motion_label(distance_km: float, locale: str | None) -> str:
    en = normalize_locale(locale) == LOCALE_EN
    if distance_km >= 15:
        return "A long walking day" if en else "よく歩いた日"
    if distance_km >= 8:
        return "Wandered around" if en else "歩き回った"
    if distance_km >= 3:
        return "Casual stroll" if en else "ゆるく散歩"
    return "Around the neighborhood" if en else "近くをめぐる"


def distance_numeric_label(distance_km: float, locale: str | None) -> str:
    if normalize_locale(locale) == LOCALE_EN:
        return f"{distance_km:.1f}km traveled"
    return f"移動 {distance_km:.1f}km"


def gps_proxy_motion_label(wandered: bool, locale: str | None) -> str:
    en = normalize_locale(locale) == LOCALE_EN
    if wandered:
        return "Wandered around" if en else "歩き回った"
    return "Casual stroll" if en else "ゆるく散歩"


# ---- Mood mapping (simple heuristics) ----

def sunlight_to_mood_label(is_likely_bright: bool, locale: str | None) -> str:
    en = normalize_locale(locale) == LOCALE_EN
    if is_likely_bright:
        return "Memories of dazzling light" if en else "まぶしさの記憶"
    return "Soft light" if en else "やわらかな光"


def default_mood_labels(locale: str | None) -> List[str]:
    if normalize_locale(locale) == LOCALE_EN:
        return ["City buzz", "Alley atmosphere"]
    return ["街のざわめき", "路地の気配"]


def uncertain_journey_label(locale: str | None) -> str:
    return "Journey of discovery" if normalize_locale(locale) == LOCALE_EN else "手探りの旅"


# ---- Trip titles ----

_MONTH_NAMES_EN = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def month_trip_title(location: str, month: int, locale: str | None) -> str:
    if normalize_locale(locale) == LOCALE_EN:
        return f"{location} trip in {_MONTH_NAMES_EN[month - 1]}"
    return f"{location}・{month}月の旅"


def season_trip_title(location: str, season: str, locale: str | None) -> str:
    if normalize_locale(locale) == LOCALE_EN:
        return f"{season_label(season, locale)} in {location}"
    return f"{location}・{season_label(season, locale)}の旅"


# ---- Warnings ----

_WARNINGS = {
    LOCALE_JA: {
        "no_gps": "GPS情報が含まれていません。位置情報は手動で指定してください。",
        "low_gps": "GPS情報が少ない写真が多く含まれています。({gps}/{total}枚)",
        "no_clusters": "GPS情報がないため、スポットを位置でまとめられませんでした。",
        "spot_failed": "スポット{index}の処理中にエラーが発生しました",
        "no_spots": "スポットを検出できませんでした。GPS情報を確認してください。",
        "cancelled": "処理が中断されたため、一部のスポットのみ生成されました。",
    },
    LOCALE_EN: {
        "no_gps": "No location data found. Did you mean to add locations manually?",
        "low_gps": "Many photos have no GPS data. ({gps}/{total} photos)",
        "no_clusters": "No location data available, so spots could not be grouped by place.",
        "spot_failed": "An error occurred while processing spot {index}",
        "no_spots": "No spots could be detected. Please check the photos' GPS data.",
        "cancelled": "Generation was interrupted; only some spots were created.",
    },
}


def warning_text(key: str, locale: str | None, **values) -> str:
    template = _WARNINGS[normalize_locale(locale)][key]
    return template.format(**values) if values else template


# ---- Progress messages ----

_PROGRESS = {
    LOCALE_JA: {
        "extracting": "EXIF情報を抽出しています...",
        "clustering": "スポットを検出しています...",
        "geocoding": "スポット名を取得しています...",
        "generating": "旅行記録を生成しています...",
        "complete": "完了しました",
    },
    LOCALE_EN: {
        "extracting": "Extracting photo metadata...",
        "clustering": "Detecting spots...",
        "geocoding": "Looking up spot names...",
        "generating": "Building your trip...",
        "complete": "Done",
    },
}


def progress_text(step: str, locale: str | None) -> str:
    return _PROGRESS[normalize_locale(locale)][step]


def uniq_by(items: Iterable[T], key_fn: Callable[[T], Hashable]) -> List[T]:
    """Keep the first item for every key, preserving order."""
    seen = set()
    out: List[T] = []
    for item in items:
        key = key_fn(item)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
