"""
Trip API routes.

Handles trip generation from uploaded photos and title suggestions.
"""
from datetime import datetime
from typing import List, Optional
import logging
import threading

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from domain.errors import TripGenerationError
from domain.models import PhotoInput, Tag, TagCategory, TripGenerationResult
from services.lexicon import normalize_locale
from services.title_engine import REQUIRED_TAG_COUNT, synthesize_titles
from services.trip_assembler import generate_trip
from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


class SpotResponse(BaseModel):
    id: str
    name: str
    address: str
    place: str = ""
    region: str = ""
    country: str = ""
    lat: float
    lng: float
    arrival_time: datetime
    departure_time: datetime
    photo_ids: List[str]
    photo_count: int
    representative_photo_id: Optional[str] = None


class TagModel(BaseModel):
    category: TagCategory
    label: str
    score: float
    reason: Optional[str] = None


class TagResponse(TagModel):
    id: str


class TitleSuggestionResponse(BaseModel):
    title: str
    subtitle: Optional[str] = None
    used_tag_ids: List[str]


class ImpressionTagResponse(BaseModel):
    id: str
    label: str
    reason: str
    category: str


class TripResponse(BaseModel):
    id: str
    title: str
    location: str
    start_date: str
    end_date: str
    spot_count: int
    photo_count: int
    cover_photo_id: Optional[str] = None
    spots: List[SpotResponse]
    tags: List[TagResponse]
    title_suggestions: List[TitleSuggestionResponse]


class GenerateTripResponse(BaseModel):
    trip: TripResponse
    warnings: List[str]
    tags: List[TagResponse]
    impression_tags: List[ImpressionTagResponse]
    cancelled: bool


class GenerateTitleRequest(BaseModel):
    tags: List[TagModel]
    locale: Optional[str] = None


class GenerateTitleResponse(BaseModel):
    suggestions: List[TitleSuggestionResponse]


def result_to_response(result: TripGenerationResult) -> GenerateTripResponse:
    """Convert a pipeline result to the API response."""
    return GenerateTripResponse(
        trip=TripResponse(**result.trip.to_dict()),
        warnings=list(result.warnings),
        tags=[TagResponse(**t.to_dict()) for t in result.tags],
        impression_tags=[ImpressionTagResponse(**t.to_dict()) for t in result.impression_tags],
        cancelled=result.cancelled,
    )


def _modified_at(last_modified: List[int], index: int) -> datetime:
    # Browsers send File.lastModified in epoch milliseconds.
    if index < len(last_modified):
        try:
            return datetime.fromtimestamp(last_modified[index] / 1000.0)
        except (OverflowError, OSError, ValueError):
            pass
    return datetime.now()


def photo_ids(filenames: List[Optional[str]]) -> List[str]:
    """One id per upload, unique within the request; repeated names get an index suffix."""
    ids: List[str] = []
    seen = set()
    for i, name in enumerate(filenames):
        base = name or f"photo-{i + 1}"
        candidate, n = base, i + 1
        while candidate in seen:
            candidate = f"{base}#{n}"
            n += 1
        seen.add(candidate)
        ids.append(candidate)
    return ids


@router.post("/generate", response_model=GenerateTripResponse)
async def generate(
    photos: List[UploadFile] = File(default=[]),
    last_modified: List[int] = Form(default=[]),
    locale: Optional[str] = Form(default=None),
):
    """
    Generate a trip from uploaded photos.

    `last_modified` (optional, one per photo, epoch ms) is used as the capture
    time for photos without a usable EXIF timestamp.
    """
    if not photos:
        raise HTTPException(status_code=400, detail="No photos uploaded")
    if len(photos) > settings.MAX_PHOTOS_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"Too many photos: {len(photos)} (max {settings.MAX_PHOTOS_PER_REQUEST})",
        )

    inputs: List[PhotoInput] = []
    ids = photo_ids([upload.filename for upload in photos])
    for i, upload in enumerate(photos):
        inputs.append(PhotoInput(
            photo_id=ids[i],
            file_modified_at=_modified_at(last_modified, i),
            data=await upload.read(),
        ))

    cancel_event = threading.Event()
    timer = threading.Timer(settings.GENERATION_TIMEOUT_SECONDS, cancel_event.set)
    timer.daemon = True
    timer.start()
    try:
        result = await run_in_threadpool(
            generate_trip, inputs, normalize_locale(locale), cancel_event=cancel_event
        )
    except TripGenerationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    finally:
        timer.cancel()

    logger.info(
        "Generated trip %s: %d spots, %d warnings%s",
        result.trip.id,
        result.trip.spot_count,
        len(result.warnings),
        " (cancelled)" if result.cancelled else "",
    )
    return result_to_response(result)


@router.post("/generate-title", response_model=GenerateTitleResponse)
async def generate_title(request: GenerateTitleRequest):
    """Suggest titles for a selection of exactly three tags."""
    if len(request.tags) != REQUIRED_TAG_COUNT:
        raise HTTPException(status_code=400, detail=f"Exactly {REQUIRED_TAG_COUNT} tags are required")

    tags = [Tag.make(t.category, t.label, t.score, t.reason) for t in request.tags]
    try:
        suggestions = synthesize_titles(tags, normalize_locale(request.locale))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return GenerateTitleResponse(suggestions=[TitleSuggestionResponse(**s.to_dict()) for s in suggestions])
