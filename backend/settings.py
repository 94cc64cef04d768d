import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _as_int(val: str | None, default: int) -> int:
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        # Server-side token first, then the one shared with the browser bundle.
        self.MAPBOX_TOKEN: str | None = os.getenv("MAPBOX_TOKEN") or os.getenv("NEXT_PUBLIC_MAPBOX_TOKEN")
        self.MAPBOX_BASE_URL: str = os.getenv(
            "MAPBOX_BASE_URL", "https://api.mapbox.com/geocoding/v5/mapbox.places"
        )
        self.GEOCODE_TIMEOUT_SECONDS: float = _as_float(os.getenv("GEOCODE_TIMEOUT_SECONDS"), 5.0)
        self.GEOCODE_BATCH_SIZE: int = _as_int(os.getenv("GEOCODE_BATCH_SIZE"), 5)
        self.CLUSTER_DISTANCE_M: float = _as_float(os.getenv("CLUSTER_DISTANCE_M"), 200.0)
        self.CLUSTER_TIME_MIN: float = _as_float(os.getenv("CLUSTER_TIME_MIN"), 30.0)
        self.MAX_PHOTOS_PER_REQUEST: int = _as_int(os.getenv("MAX_PHOTOS_PER_REQUEST"), 500)
        self.GENERATION_TIMEOUT_SECONDS: float = _as_float(os.getenv("GENERATION_TIMEOUT_SECONDS"), 90.0)
        # Exposes /debug/geocode for checking the Mapbox setup.
        self.DEBUG_ROUTES_ENABLED: bool = _as_bool(os.getenv("DEBUG_ROUTES_ENABLED"), False)
        self.DEFAULT_LOCALE: str = os.getenv("DEFAULT_LOCALE", "ja")
        # Mean luma (0..255) above which a photo set reads as bright.
        self.BRIGHTNESS_THRESHOLD: float = _as_float(os.getenv("BRIGHTNESS_THRESHOLD"), 140.0)


settings = Settings()
