"""
Debug routes for checking the reverse-geocoding setup.

Disabled unless DEBUG_ROUTES_ENABLED is set.
"""
from fastapi import APIRouter, HTTPException, Query

from domain.errors import GeocodingError
from services.geocoding import extract_city, extract_region_token, get_default_geocoder
from services.lexicon import normalize_locale
from services.place_resolver import PlaceResolver, format_coordinates, pick_place
from settings import settings

router = APIRouter()


@router.get("/geocode")
def debug_geocode(
    lat: float = Query(...),
    lng: float = Query(...),
    locale: str = Query("ja"),
):
    """Show the raw candidates for a coordinate next to the resolved place."""
    if not settings.DEBUG_ROUTES_ENABLED:
        raise HTTPException(status_code=404, detail="Not found")

    loc = normalize_locale(locale)
    geocoder = get_default_geocoder()
    try:
        features = geocoder.lookup(lat, lng, loc)
    except GeocodingError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    resolved = PlaceResolver(geocoder).resolve(lat, lng, loc)
    return {
        "query": format_coordinates(lat, lng),
        "locale": loc,
        "features": [
            {"label": f.label, "full_address": f.full_address, "place_types": f.place_types}
            for f in features
        ],
        "picked": pick_place(features, loc).to_dict(),
        "resolved": resolved.to_dict(),
        "address_region": extract_region_token(resolved.address),
        "address_city": extract_city(resolved.address),
    }
