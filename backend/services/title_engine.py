"""
Title suggestions from a three-tag selection.

Gentle compositional templates rather than plain concatenation. Each template
fires only when the categories it needs are present; a fallback always
exists, so every selection yields at least one title.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence
import re

from domain.models import Tag, TagCategory, TitleSuggestion
from services import lexicon

REQUIRED_TAG_COUNT = 3
MAX_SUGGESTIONS = 3

# Categories that can lend the poetic tail of a title, in priority order.
POETIC_PRIORITY = (TagCategory.MOOD, TagCategory.MOTION, TagCategory.TIME)


def _clean_label(label: str) -> str:
    return re.sub(r"\s+", " ", label).strip()


@dataclass
class _Slots:
    place: str = ""
    season: str = ""
    time: str = ""
    motion: str = ""
    mood: str = ""
    poetic: str = ""


def _slots(tags: Sequence[Tag], locale: str) -> _Slots:
    def first(category: TagCategory) -> str:
        for tag in tags:
            if tag.category == category:
                return _clean_label(tag.label)
        return ""

    poetic = ""
    for category in POETIC_PRIORITY:
        poetic = first(category)
        if poetic:
            break
    if not poetic:
        poetic = lexicon.sentinels_for(locale).default_poetic

    return _Slots(
        place=first(TagCategory.PLACE),
        season=first(TagCategory.SEASON),
        time=first(TagCategory.TIME),
        motion=first(TagCategory.MOTION),
        mood=first(TagCategory.MOOD),
        poetic=poetic,
    )


def _suggestions_ja(s: _Slots, used: List[str], locale: str) -> List[TitleSuggestion]:
    out: List[TitleSuggestion] = []
    if s.place and s.season:
        out.append(TitleSuggestion(
            title=f"{s.place}、{s.season}の{s.poetic}",
            subtitle=s.motion or s.time or s.mood or None,
            used_tag_ids=used,
        ))
    if s.place and s.time:
        motion = s.motion or lexicon.sentinels_for(locale).default_motion_phrase
        out.append(TitleSuggestion(
            title=f"{s.time}の{s.place}で、{motion}",
            subtitle=s.mood or s.season or None,
            used_tag_ids=used,
        ))
    if s.place or s.season:
        info = s.place or s.season
        parts = [f"{s.place} / {s.season}" if s.place and s.season else "", s.motion, s.time, s.mood]
        out.append(TitleSuggestion(
            title=f"{info}の記憶 — {s.poetic}",
            subtitle="・".join(p for p in parts if p) or None,
            used_tag_ids=used,
        ))
    if not out:
        out.append(TitleSuggestion(title=f"旅の記録 — {s.poetic}", used_tag_ids=used))
    return out


def _suggestions_en(s: _Slots, used: List[str], locale: str) -> List[TitleSuggestion]:
    out: List[TitleSuggestion] = []
    if s.place and s.season:
        out.append(TitleSuggestion(
            title=f"{s.place}, {s.season} {s.poetic}",
            subtitle=s.motion or s.time or s.mood or None,
            used_tag_ids=used,
        ))
    if s.place and s.time:
        motion = s.motion or lexicon.sentinels_for(locale).default_motion_phrase
        out.append(TitleSuggestion(
            title=f"{s.time} in {s.place}, {motion}",
            subtitle=s.mood or s.season or None,
            used_tag_ids=used,
        ))
    if s.place or s.season:
        info = s.place or s.season
        parts = [f"{s.place} / {s.season}" if s.place and s.season else "", s.motion, s.time, s.mood]
        out.append(TitleSuggestion(
            title=f"{info} memories — {s.poetic}",
            subtitle=" · ".join(p for p in parts if p) or None,
            used_tag_ids=used,
        ))
    if not out:
        out.append(TitleSuggestion(title=f"Travel record — {s.poetic}", used_tag_ids=used))
    return out


def synthesize_titles(tags: Sequence[Tag], locale: Optional[str] = None) -> List[TitleSuggestion]:
    """
    Build up to three distinct title suggestions from exactly three tags.

    Raises ValueError when the selection is not three tags.
    """
    if len(tags) != REQUIRED_TAG_COUNT:
        raise ValueError(f"exactly {REQUIRED_TAG_COUNT} tags are required, got {len(tags)}")

    loc = lexicon.normalize_locale(locale)
    slots = _slots(tags, loc)
    used = [t.id for t in tags]
    if loc == lexicon.LOCALE_EN:
        suggestions = _suggestions_en(slots, used, loc)
    else:
        suggestions = _suggestions_ja(slots, used, loc)

    seen = set()
    unique: List[TitleSuggestion] = []
    for suggestion in suggestions:
        if suggestion.title in seen:
            continue
        seen.add(suggestion.title)
        unique.append(suggestion)
    return unique[:MAX_SUGGESTIONS]
