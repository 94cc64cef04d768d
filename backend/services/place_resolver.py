"""
Place resolution for spots.

Maps a cluster centroid to a short, human-friendly place name using a
type-priority fallback chain over the lookup's candidates:

    poi -> neighborhood -> locality -> place -> region -> address

Lookup failures never escape: a spot whose lookup errors or times out keeps
its coordinates as the address and the unknown-spot sentinel as the name.
"""
from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple
import logging
import threading
import time

from domain.models import Cluster, GeocodeFeature, PlaceResolution, ResolvedSpot, is_valid_coordinate
from services.lexicon import sentinels_for, warning_text
from settings import settings

logger = logging.getLogger(__name__)

# How often a waiting batch re-checks the cancel signal.
_CANCEL_POLL_SECONDS = 0.05


class PlaceLookup(Protocol):
    def lookup(self, lat: float, lng: float, locale: str) -> List[GeocodeFeature]:
        ...


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def _unknown(locale: str, address: str = "", feature_types: Optional[List[str]] = None) -> PlaceResolution:
    return PlaceResolution(
        name=sentinels_for(locale).unknown_spot,
        address=address,
        feature_types=list(feature_types or []),
    )


def pick_place(features: Sequence[GeocodeFeature], locale: str) -> PlaceResolution:
    """
    Choose the most specific named candidate.

    The first tier with a matching feature wins; region/country (and place,
    for sub-city tiers) come from the winning feature's ancestor context.
    """
    unknown_name = sentinels_for(locale).unknown_spot
    feature_types = [t for f in features for t in f.place_types]

    def by_type(place_type: str) -> Optional[GeocodeFeature]:
        for feature in features:
            if feature.has_type(place_type):
                return feature
        return None

    def city_of(feature: GeocodeFeature) -> str:
        return feature.context_text("place.") or feature.context_text("locality.")

    poi = by_type("poi")
    if poi:
        return PlaceResolution(
            name=poi.label or poi.properties_name or unknown_name,
            address=poi.full_address,
            place=city_of(poi),
            region=poi.context_text("region."),
            country=poi.context_text("country."),
            feature_types=feature_types,
        )

    neighborhood = by_type("neighborhood")
    if neighborhood:
        return PlaceResolution(
            name=neighborhood.label or unknown_name,
            address=neighborhood.full_address,
            place=city_of(neighborhood),
            region=neighborhood.context_text("region."),
            country=neighborhood.context_text("country."),
            feature_types=feature_types,
        )

    locality = by_type("locality")
    if locality:
        name = locality.label or unknown_name
        return PlaceResolution(
            name=name,
            address=locality.full_address,
            place=locality.context_text("place.") or name,
            region=locality.context_text("region."),
            country=locality.context_text("country."),
            feature_types=feature_types,
        )

    city = by_type("place")
    if city:
        name = city.label or unknown_name
        return PlaceResolution(
            name=name,
            address=city.full_address,
            place=name,
            region=city.context_text("region."),
            country=city.context_text("country."),
            feature_types=feature_types,
        )

    region = by_type("region")
    if region:
        name = region.label or unknown_name
        return PlaceResolution(
            name=name,
            address=region.full_address,
            place="",
            region=name,
            country=region.context_text("country."),
            feature_types=feature_types,
        )

    street = by_type("address")
    if street:
        return PlaceResolution(
            name=street.label or unknown_name,
            address=street.full_address,
            place=city_of(street),
            region=street.context_text("region."),
            country=street.context_text("country."),
            feature_types=feature_types,
        )

    return _unknown(locale, feature_types=feature_types)


@dataclass(frozen=True)
class ResolutionOutcome:
    """Per-cluster result of a batch: exactly one of spot/warning is set."""
    index: int
    spot: Optional[ResolvedSpot] = None
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.spot is not None


class PlaceResolver:
    """Resolve coordinates (single or batched) through a PlaceLookup."""

    def __init__(
        self,
        lookup: PlaceLookup,
        batch_size: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.lookup = lookup
        self.batch_size = max(1, batch_size or settings.GEOCODE_BATCH_SIZE)
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.GEOCODE_TIMEOUT_SECONDS

    def resolve(self, lat: float, lng: float, locale: str) -> PlaceResolution:
        """Resolve one coordinate; never raises for provider trouble."""
        if not is_valid_coordinate(lat, lng):
            logger.warning("Invalid coordinates provided: lat=%r lng=%r", lat, lng)
            return _unknown(locale, address=sentinels_for(locale).invalid_coordinates)

        coords = format_coordinates(lat, lng)
        try:
            features = self.lookup.lookup(lat, lng, locale)
        except Exception as exc:
            logger.warning("Reverse geocoding failed for %s: %s", coords, exc)
            return _unknown(locale, address=coords)

        if not features:
            return _unknown(locale, address=coords)

        picked = pick_place(features, locale)
        if not picked.address:
            picked = PlaceResolution(
                name=picked.name,
                address=coords,
                place=picked.place,
                region=picked.region,
                country=picked.country,
                feature_types=picked.feature_types,
            )
        logger.debug("Resolved %s -> %s (%s)", coords, picked.name, picked.address)
        return picked

    def _resolve_cluster(self, cluster: Cluster, index: int, locale: str) -> ResolvedSpot:
        if not cluster.centroid.is_valid:
            raise ValueError(f"cluster {index + 1} has invalid coordinates")
        resolution = self.resolve(cluster.centroid.lat, cluster.centroid.lng, locale)
        return ResolvedSpot.from_cluster(cluster, resolution)

    def _timed_out_spot(self, cluster: Cluster, locale: str) -> ResolvedSpot:
        coords = format_coordinates(cluster.centroid.lat, cluster.centroid.lng)
        return ResolvedSpot.from_cluster(cluster, _unknown(locale, address=coords))

    def resolve_many(
        self,
        clusters: Sequence[Cluster],
        locale: str,
        cancel_event: Optional[threading.Event] = None,
        on_batch_done: Optional[Callable[[int, int], None]] = None,
    ) -> Tuple[List[ResolvedSpot], List[str], bool]:
        """
        Resolve clusters in fixed-size batches.

        Batches run one after another; members of a batch run concurrently.
        Returns (spots, warnings, cancelled). A failing cluster is dropped and
        reported as one warning; siblings are unaffected.
        """
        spots: List[ResolvedSpot] = []
        warnings: List[str] = []
        if not clusters:
            return spots, warnings, False

        total = len(clusters)
        cancelled = False
        executor = ThreadPoolExecutor(max_workers=self.batch_size, thread_name_prefix="place-resolver")
        try:
            for start in range(0, total, self.batch_size):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                batch = clusters[start:start + self.batch_size]
                logger.debug("Processing batch %d: clusters %d-%d", start // self.batch_size + 1, start + 1, start + len(batch))
                outcomes, cancelled = self._run_batch(executor, batch, start, locale, cancel_event)
                for outcome in outcomes:
                    if outcome.ok:
                        spots.append(outcome.spot)
                    else:
                        warnings.append(outcome.warning)
                if on_batch_done is not None:
                    on_batch_done(start + len(batch), total)
                if cancelled:
                    break
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if cancelled:
            logger.warning("Place resolution cancelled after %d/%d spots", len(spots), total)
        logger.info("Geocoding completed: %d/%d spots processed", len(spots), total)
        return spots, warnings, cancelled

    def _run_batch(
        self,
        executor: ThreadPoolExecutor,
        batch: Sequence[Cluster],
        start: int,
        locale: str,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[List[ResolutionOutcome], bool]:
        futures: List[Future] = [
            executor.submit(self._resolve_cluster, cluster, start + offset, locale)
            for offset, cluster in enumerate(batch)
        ]
        # Small grace on top of the HTTP timeout so the transport's own limit fires first.
        deadline = time.monotonic() + self.timeout_seconds + 0.5
        cancelled = False
        pending = set(futures)
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            _, pending = wait(pending, timeout=min(remaining, _CANCEL_POLL_SECONDS), return_when=FIRST_COMPLETED)

        outcomes: List[ResolutionOutcome] = []
        for offset, (cluster, future) in enumerate(zip(batch, futures)):
            index = start + offset
            if not future.done():
                future.cancel()
                if cancelled:
                    continue
                logger.warning("Reverse geocoding timed out for cluster %d", index + 1)
                outcomes.append(ResolutionOutcome(index=index, spot=self._timed_out_spot(cluster, locale)))
                continue
            try:
                outcomes.append(ResolutionOutcome(index=index, spot=future.result()))
            except Exception as exc:
                logger.error("Failed to process cluster %d: %s", index + 1, exc)
                outcomes.append(
                    ResolutionOutcome(index=index, warning=warning_text("spot_failed", locale, index=index + 1))
                )
        return outcomes, cancelled
