"""
EXIF metadata extraction service.

Turns one photo's embedded tags into a normalized PhotoRecord: decimal
GPS coordinates and a capture timestamp. Extraction never raises; a photo
whose container cannot be read still yields a record that carries the file
modification time and no location.
"""
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Optional
import logging
import math

from PIL import Image
from PIL.ExifTags import GPSTAGS, TAGS

from domain.models import GeoPoint, PhotoRecord, is_valid_coordinate
from services.photo_brightness import measure_brightness

logger = logging.getLogger(__name__)

# Sub-IFD pointers inside IFD0.
EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825

# Tried in order; the first one that parses wins.
DATETIME_TAGS = [
    "DateTimeOriginal",
    "CreateDate",
    "DateTimeDigitized",
    "DateTime",
    "DateCreated",
    "ModifyDate",
    "CreationDate",
]

DATETIME_FORMATS = [
    "%Y:%m:%d %H:%M:%S",  # Standard EXIF format
    "%Y-%m-%d %H:%M:%S",  # ISO-ish format
    "%Y/%m/%d %H:%M:%S",  # Slash format
    "%Y:%m:%d %H:%M:%S.%f",
]


def extract_photo_record(photo_id: str, file_bytes: bytes, file_modified_at: datetime) -> PhotoRecord:
    """
    Extract a PhotoRecord from image bytes.

    Args:
        photo_id: Caller-supplied identifier, unique within the request.
        file_bytes: Raw image file bytes (JPEG, PNG, HEIC, etc.)
        file_modified_at: Used as the capture time when no tag parses.

    Returns:
        PhotoRecord with location=None when GPS is missing or invalid.
    """
    fallback = _as_naive(file_modified_at)
    try:
        img = Image.open(BytesIO(file_bytes))
    except Exception as exc:
        logger.debug("Could not open image %s, using file metadata: %s", photo_id, exc)
        return PhotoRecord(id=photo_id, captured_at=fallback)

    tags = read_exif_tags(img)
    if not tags:
        logger.debug("No EXIF data found in %s, using file metadata", photo_id)
    brightness = measure_brightness(img)
    return record_from_metadata(photo_id, tags or {}, fallback, brightness=brightness)


def record_from_metadata(
    photo_id: str,
    metadata: Dict[str, Any],
    file_modified_at: datetime,
    brightness: Optional[float] = None,
) -> PhotoRecord:
    """Build a PhotoRecord from an already-extracted tag dictionary."""
    location = _parse_location(metadata or {})
    captured_at = _parse_datetime(metadata or {}) or _as_naive(file_modified_at)
    return PhotoRecord(
        id=photo_id,
        captured_at=captured_at,
        location=location,
        brightness=brightness,
    )


def read_exif_tags(img) -> Optional[Dict[str, Any]]:
    """
    Read EXIF tags as a name-keyed dictionary.

    The full tag read is tried first; containers that do not support it (or
    choke on a malformed segment) are retried with only IFD0, the Exif IFD and
    the GPS IFD.
    """
    try:
        tags = _get_exif_dict(img)
        if tags:
            return tags
    except Exception as exc:
        logger.debug("Full EXIF read failed, retrying with minimal tag set: %s", exc)

    try:
        return _get_exif_dict_lenient(img)
    except Exception as exc:
        logger.debug("Minimal EXIF read also failed: %s", exc)
        return None


def _get_exif_dict(img) -> Optional[Dict[str, Any]]:
    """
    Extract EXIF data as a human-readable dictionary.

    Converts numeric tag IDs to string names and makes values JSON-serializable.
    """
    exif_raw = img._getexif()
    if not exif_raw:
        return None

    exif_dict: Dict[str, Any] = {}
    for tag_id, value in exif_raw.items():
        tag_name = TAGS.get(tag_id, str(tag_id))

        # Handle GPSInfo specially
        if tag_name == "GPSInfo" and isinstance(value, dict):
            exif_dict[tag_name] = _name_gps_tags(value)
        else:
            exif_dict[tag_name] = _make_json_safe(value)

    return exif_dict


def _get_exif_dict_lenient(img) -> Optional[Dict[str, Any]]:
    exif = img.getexif()
    if not exif:
        return None

    exif_dict: Dict[str, Any] = {}
    for tag_id, value in exif.items():
        if tag_id in (EXIF_IFD_POINTER, GPS_IFD_POINTER):
            continue
        exif_dict[TAGS.get(tag_id, str(tag_id))] = _make_json_safe(value)

    for tag_id, value in (exif.get_ifd(EXIF_IFD_POINTER) or {}).items():
        exif_dict[TAGS.get(tag_id, str(tag_id))] = _make_json_safe(value)

    gps_ifd = exif.get_ifd(GPS_IFD_POINTER)
    if gps_ifd:
        exif_dict["GPSInfo"] = _name_gps_tags(gps_ifd)

    return exif_dict or None


def _name_gps_tags(gps_raw: Dict[Any, Any]) -> Dict[str, Any]:
    return {
        GPSTAGS.get(gps_tag_id, str(gps_tag_id)): _make_json_safe(gps_value)
        for gps_tag_id, gps_value in gps_raw.items()
    }


def _make_json_safe(value: Any) -> Any:
    """Convert EXIF value to JSON-serializable type."""
    if value is None:
        return None

    # Handle bytes
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").rstrip("\x00")

    # Handle tuples/lists (common for GPS coordinates)
    if isinstance(value, (tuple, list)):
        return [_make_json_safe(v) for v in value]

    # Handle IFDRational or similar fraction types
    if hasattr(value, "numerator") and hasattr(value, "denominator"):
        try:
            if value.denominator == 0:
                return None
            return float(value.numerator) / float(value.denominator)
        except (TypeError, ValueError):
            return str(value)

    # Handle basic types
    if isinstance(value, (int, float, str, bool, datetime)):
        return value

    # Handle dict
    if isinstance(value, dict):
        return {str(k): _make_json_safe(v) for k, v in value.items()}

    # Fallback to string representation
    return str(value)


def _as_naive(value: datetime) -> datetime:
    """Drop tzinfo after shifting to local time so all records compare."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _parse_datetime(exif_data: Dict[str, Any]) -> Optional[datetime]:
    """Parse capture datetime from EXIF data."""
    for tag in DATETIME_TAGS:
        value = exif_data.get(tag)
        if value:
            parsed = _parse_exif_datetime(value)
            if parsed:
                return parsed

    return None


def _parse_exif_datetime(value: Any) -> Optional[datetime]:
    """Parse an EXIF datetime string (or pass a datetime through)."""
    if isinstance(value, datetime):
        return _as_naive(value)
    if not isinstance(value, str):
        return None

    text = value.strip().rstrip("\x00")
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        return _as_naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def _parse_location(exif_data: Dict[str, Any]) -> Optional[GeoPoint]:
    """
    Parse GPS latitude and longitude from either decimal keys or the
    GPSInfo degrees/minutes/seconds triples.
    """
    gps_info = exif_data.get("GPSInfo")
    if not isinstance(gps_info, dict):
        gps_info = {}

    lat = _coerce_coordinate(
        _first_present(exif_data.get("latitude"), gps_info.get("GPSLatitude"),
                       exif_data.get("GPSLatitude"), exif_data.get("Latitude")),
        _first_present(gps_info.get("GPSLatitudeRef"), exif_data.get("GPSLatitudeRef"),
                       exif_data.get("LatitudeRef")) or "N",
    )
    lng = _coerce_coordinate(
        _first_present(exif_data.get("longitude"), gps_info.get("GPSLongitude"),
                       exif_data.get("GPSLongitude"), exif_data.get("Longitude")),
        _first_present(gps_info.get("GPSLongitudeRef"), exif_data.get("GPSLongitudeRef"),
                       exif_data.get("LongitudeRef")) or "E",
    )

    if lat is None or lng is None:
        return None
    if not is_valid_coordinate(lat, lng):
        logger.debug("Discarding out-of-range coordinates lat=%s lng=%s", lat, lng)
        return None
    return GeoPoint(lat=lat, lng=lng)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _coerce_coordinate(value: Any, ref: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return convert_dms(value, str(ref))
    if isinstance(value, bool):
        return None
    try:
        decimal = float(value)
    except (TypeError, ValueError):
        return None
    return decimal if math.isfinite(decimal) else None


def convert_dms(dms: Any, ref: str) -> Optional[float]:
    """
    Convert degrees/minutes/seconds to decimal degrees.

    Args:
        dms: List/tuple of [degrees, minutes, seconds] (may be floats or rationals)
        ref: Reference direction ("N", "S", "E", "W")

    Returns:
        Decimal degrees, negative for S/W. None if the triple is unusable.
    """
    if not isinstance(dms, (list, tuple)) or len(dms) < 3:
        return None
    try:
        degrees = float(dms[0] or 0)
        minutes = float(dms[1] or 0)
        seconds = float(dms[2] or 0)
    except (TypeError, ValueError):
        return None

    decimal = degrees + (minutes / 60.0) + (seconds / 3600.0)
    if not math.isfinite(decimal):
        return None

    # Apply direction
    if (ref or "").strip().upper() in ("S", "W"):
        decimal = -decimal

    return round(decimal, 7)  # ~1cm precision


def register_heif_opener():
    """
    Register HEIF/HEIC opener with Pillow if pillow-heif is available.

    Call this at application startup so iPhone photos can be read.
    Safe to call multiple times or if pillow-heif is not installed.
    """
    try:
        from pillow_heif import register_heif_opener as _register
        _register()
        return True
    except ImportError:
        return False
