"""Reverse geocoding client for the Mapbox Places API.

Provider JSON is validated into GeocodeFeature values here, once; nothing
downstream reads the raw payload. Every failure surfaces as GeocodingError so
the resolver has a single thing to degrade on.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

import requests

from domain.errors import GeocodingError
from domain.models import ContextEntry, GeocodeFeature
from services.lexicon import normalize_locale
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()

MAPBOX_PLACE_TYPES = ("poi", "neighborhood", "locality", "place", "region", "address")
MAPBOX_RESULT_LIMIT = 6
MAPBOX_HEADERS = {"Accept": "application/json"}

_PREFECTURE_PATTERN = re.compile(r"(東京都|北海道|(?:京都|大阪)府|.{2,3}県)")
_CITY_PATTERN = re.compile(r"(?:東京都|北海道|(?:京都|大阪)府|.{2,3}県)(.+?[市区町村])")


def _safe_string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _parse_context(raw: Any) -> List[ContextEntry]:
    if not isinstance(raw, list):
        return []
    entries: List[ContextEntry] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        entry_id = _safe_string(item.get("id"))
        if not entry_id:
            continue
        entries.append(ContextEntry(id=entry_id, text=_safe_string(item.get("text"))))
    return entries


def parse_feature(item: Any) -> Optional[GeocodeFeature]:
    """Validate one raw Mapbox feature; None if it is not an object."""
    if not isinstance(item, dict):
        return None
    place_types = item.get("place_type")
    if not isinstance(place_types, list):
        place_types = []
    properties = item.get("properties")
    properties_name = _safe_string(properties.get("name")) if isinstance(properties, dict) else ""
    return GeocodeFeature(
        label=_safe_string(item.get("text")),
        full_address=_safe_string(item.get("place_name")),
        place_types=[t for t in place_types if isinstance(t, str) and t],
        properties_name=properties_name,
        context=_parse_context(item.get("context")),
    )


def parse_features(data: Any) -> List[GeocodeFeature]:
    """Validate a Mapbox response body into a list of features."""
    raw = data.get("features") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        return []
    features = [parse_feature(item) for item in raw]
    return [f for f in features if f is not None]


class MapboxGeocoder:
    """Place lookup backed by Mapbox's reverse geocoding endpoint."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.token = token if token is not None else settings.MAPBOX_TOKEN
        self.base_url = (base_url or settings.MAPBOX_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GEOCODE_TIMEOUT_SECONDS
        self.session = session or _session

    def _check_token(self) -> str:
        if not self.token:
            logger.error("MAPBOX_TOKEN / NEXT_PUBLIC_MAPBOX_TOKEN is not configured")
            raise GeocodingError("Mapbox token is not configured")
        if not (self.token.startswith("pk.") or self.token.startswith("sk.")):
            logger.error('Invalid Mapbox token format; expected a "pk." or "sk." prefix')
            raise GeocodingError("Mapbox token has an invalid format")
        return self.token

    def lookup(self, lat: float, lng: float, locale: str) -> List[GeocodeFeature]:
        """
        Return candidate features for a coordinate, most specific types included.

        Raises GeocodingError on any configuration, transport or payload problem.
        """
        token = self._check_token()
        # Mapbox wants lng,lat order.
        url = f"{self.base_url}/{lng},{lat}.json"
        params = {
            "access_token": token,
            "language": normalize_locale(locale),
            "types": ",".join(MAPBOX_PLACE_TYPES),
            "limit": str(MAPBOX_RESULT_LIMIT),
        }

        try:
            resp = self.session.get(url, params=params, headers=MAPBOX_HEADERS, timeout=self.timeout)
        except requests.Timeout as exc:
            raise GeocodingError(f"Geocoding timeout after {self.timeout:g}s") from exc
        except requests.RequestException as exc:
            raise GeocodingError(f"Geocoding request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning("Mapbox API error %s: %s", resp.status_code, (resp.text or "")[:200])
            raise GeocodingError(f"Mapbox API error: {resp.status_code}", status_code=resp.status_code)

        content_type = resp.headers.get("content-type") or ""
        if "application/json" not in content_type:
            raise GeocodingError(f"Unexpected content-type: {content_type or 'none'}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GeocodingError("Invalid JSON response from Mapbox API") from exc

        features = parse_features(data)
        logger.debug(
            "Mapbox lookup lat=%.6f lng=%.6f got %d features (%s)",
            lat,
            lng,
            len(features),
            ",".join("/".join(f.place_types) for f in features),
        )
        return features


_default_geocoder: Optional[MapboxGeocoder] = None


def get_default_geocoder() -> MapboxGeocoder:
    global _default_geocoder
    if _default_geocoder is None:
        _default_geocoder = MapboxGeocoder()
    return _default_geocoder


def extract_region_token(address: Optional[str]) -> str:
    """Pull a prefecture name (e.g. 京都府, 神奈川県) out of a formatted address."""
    if not address or not isinstance(address, str):
        return ""
    match = _PREFECTURE_PATTERN.search(address)
    return match.group(1) if match else ""


def extract_city(address: Optional[str]) -> str:
    """Pull the municipality that follows the prefecture out of an address."""
    if not address or not isinstance(address, str):
        return ""
    match = _CITY_PATTERN.search(address)
    return match.group(1) if match else ""
