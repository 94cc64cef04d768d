"""Exceptions shared by the trip generation services."""


class TripGenerationError(Exception):
    """The request cannot produce a trip at all (e.g. no photos supplied)."""


class GeocodingError(Exception):
    """Reverse-geocoding provider failed: transport, status, or payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
