"""
Core domain models for the trip generator.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import math
import uuid


class TagCategory(str, Enum):
    """The closed set of semantic categories a trip tag can belong to."""
    PLACE = "place"
    SEASON = "season"
    TIME = "time"
    MOTION = "motion"
    MOOD = "mood"


# Selection order when picking one tag per category.
TAG_CATEGORIES: List[TagCategory] = [
    TagCategory.PLACE,
    TagCategory.SEASON,
    TagCategory.TIME,
    TagCategory.MOTION,
    TagCategory.MOOD,
]


class ProgressStep(str, Enum):
    """Stages reported while a trip is being generated."""
    EXTRACTING = "extracting"
    CLUSTERING = "clustering"
    GEOCODING = "geocoding"
    GENERATING = "generating"
    COMPLETE = "complete"


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in decimal degrees."""
    lat: float
    lng: float

    @property
    def is_valid(self) -> bool:
        return is_valid_coordinate(self.lat, self.lng)


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    """True when both values are finite numbers inside WGS84 bounds."""
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    if not math.isfinite(lat) or not math.isfinite(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


@dataclass(frozen=True)
class PhotoRecord:
    """Normalized metadata for one input photo.

    `captured_at` is always populated; when the image carries no usable
    timestamp it holds the file modification time instead.
    """
    id: str
    captured_at: datetime
    location: Optional[GeoPoint] = None
    brightness: Optional[float] = None  # mean luma 0..255, None if pixels unreadable

    @property
    def has_location(self) -> bool:
        return self.location is not None


@dataclass
class PhotoInput:
    """
    One photo handed to the pipeline.

    Either `data` (raw image bytes) or `metadata` (tags already extracted
    upstream, keyed by EXIF tag name) should be set.
    """
    photo_id: str
    file_modified_at: datetime
    data: Optional[bytes] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Cluster:
    """A contiguous run of photos taken close together in space and time."""
    id: str
    centroid: GeoPoint
    arrival_time: datetime
    departure_time: datetime
    member_ids: List[str] = field(default_factory=list)

    @property
    def photo_count(self) -> int:
        return len(self.member_ids)


@dataclass(frozen=True)
class ContextEntry:
    """An ancestor entry of a geocode feature, e.g. ("region.", "Tokyo")."""
    id: str
    text: str = ""

    def has_prefix(self, prefix: str) -> bool:
        return self.id.startswith(prefix)


@dataclass(frozen=True)
class GeocodeFeature:
    """One reverse-geocoding candidate, validated at the provider boundary."""
    label: str = ""
    full_address: str = ""
    place_types: List[str] = field(default_factory=list)
    properties_name: str = ""
    context: List[ContextEntry] = field(default_factory=list)

    def has_type(self, place_type: str) -> bool:
        return place_type in self.place_types

    def context_text(self, prefix: str) -> str:
        for entry in self.context:
            if entry.has_prefix(prefix):
                return entry.text
        return ""


@dataclass(frozen=True)
class PlaceResolution:
    """Human-readable place fields resolved for one coordinate."""
    name: str
    address: str = ""
    place: str = ""
    region: str = ""
    country: str = ""
    feature_types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "place": self.place,
            "region": self.region,
            "country": self.country,
            "feature_types": list(self.feature_types),
        }


@dataclass(frozen=True)
class ResolvedSpot:
    """A cluster augmented with its place resolution."""
    id: str
    name: str
    address: str
    lat: float
    lng: float
    arrival_time: datetime
    departure_time: datetime
    member_ids: List[str] = field(default_factory=list)
    place: str = ""
    region: str = ""
    country: str = ""

    @classmethod
    def from_cluster(cls, cluster: Cluster, resolution: PlaceResolution) -> "ResolvedSpot":
        return cls(
            id=cluster.id,
            name=resolution.name,
            address=resolution.address,
            lat=cluster.centroid.lat,
            lng=cluster.centroid.lng,
            arrival_time=cluster.arrival_time,
            departure_time=cluster.departure_time,
            member_ids=list(cluster.member_ids),
            place=resolution.place,
            region=resolution.region,
            country=resolution.country,
        )

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)

    @property
    def photo_count(self) -> int:
        return len(self.member_ids)

    @property
    def representative_photo_id(self) -> Optional[str]:
        # First photo for now; picking by sharpness or framing can come later.
        return self.member_ids[0] if self.member_ids else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "place": self.place,
            "region": self.region,
            "country": self.country,
            "lat": self.lat,
            "lng": self.lng,
            "arrival_time": self.arrival_time.isoformat(),
            "departure_time": self.departure_time.isoformat(),
            "photo_ids": list(self.member_ids),
            "photo_count": self.photo_count,
            "representative_photo_id": self.representative_photo_id,
        }


def clamp01(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class Tag:
    """A scored descriptive label. Identity is (category, label)."""
    category: TagCategory
    label: str
    score: float
    reason: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.category.value}:{self.label}"

    @classmethod
    def make(cls, category: TagCategory, label: str, score: float, reason: Optional[str] = None) -> "Tag":
        return cls(category=category, label=label, score=clamp01(score), reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "label": self.label,
            "score": self.score,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class TitleSuggestion:
    title: str
    used_tag_ids: List[str] = field(default_factory=list)
    subtitle: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "used_tag_ids": list(self.used_tag_ids),
        }


@dataclass(frozen=True)
class ImpressionTag:
    """Looser "what the trip felt like" tag shown on the trip page."""
    id: str
    label: str
    reason: str
    category: str  # "time" | "movement" | "place" | "air"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "reason": self.reason, "category": self.category}


@dataclass
class Trip:
    """
    The aggregate produced by one generation request.

    Persistence belongs to the caller.
    """
    id: str
    title: str
    location: str
    start_date: date
    end_date: date
    spots: List[ResolvedSpot] = field(default_factory=list)
    photo_count: int = 0
    tags: List[Tag] = field(default_factory=list)
    title_suggestions: List[TitleSuggestion] = field(default_factory=list)
    cover_photo_id: Optional[str] = None

    @staticmethod
    def generate_id() -> str:
        return f"trip-{uuid.uuid4()}"

    @property
    def spot_count(self) -> int:
        return len(self.spots)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "location": self.location,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "spot_count": self.spot_count,
            "photo_count": self.photo_count,
            "cover_photo_id": self.cover_photo_id,
            "spots": [s.to_dict() for s in self.spots],
            "tags": [t.to_dict() for t in self.tags],
            "title_suggestions": [s.to_dict() for s in self.title_suggestions],
        }


@dataclass
class GenerationProgress:
    step: ProgressStep
    progress: float  # 0..100
    message: str


@dataclass
class TripGenerationResult:
    trip: Trip
    warnings: List[str] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    impression_tags: List[ImpressionTag] = field(default_factory=list)
    cancelled: bool = False
