"""
Place Resolver

Turns the best sign text plus the device's GPS fix into a PlaceResolution.

    START ──► TEXT_FOUND ──► STORE_VERIFIED ─────────────┐
      │            │                                     ▼
      │            └──────► STORE_UNVERIFIED ─► GEOCODED ─► RESOLVED
      └──► NO_TEXT ───────────────────────────► GEOCODED

TEXT_FOUND searches for the text within 500 m of the device. A hit adopts
the nearest place's name, address, phone and category and moves the photo
to the place's coordinate. No hit (or a failed / timed-out search) falls
back to reverse geocoding the device's own location, categorizing by the
sign text keywords ("Other" when no text was read).

Transitions are plain functions so they can be tested without services;
PlaceResolver drives them, making the external calls strictly in sequence.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from placelens.app_logger import get_logger
from placelens.categories import OTHER, categorize
from placelens.geo_services import PlaceSearch, ReverseGeocoder
from placelens.gps_utils import distance_meters, nearest_place
from placelens.models import (Coordinate, PlaceResolution, PlaceResult, Placemark,
                              ResolutionSource)

log = get_logger(__name__)

SEARCH_RADIUS_M = 500.0


class ResolverState(Enum):
    START = "start"
    TEXT_FOUND = "text-found"
    NO_TEXT = "no-text"
    STORE_VERIFIED = "store-verified"
    STORE_UNVERIFIED = "store-unverified"
    GEOCODED = "geocoded"
    RESOLVED = "resolved"


@dataclass
class ResolutionTrace:
    """Everything the resolver learned on the way to a resolution."""
    best_text: Optional[str]
    device_location: Coordinate
    states: List[ResolverState] = field(default_factory=lambda: [ResolverState.START])
    search_results: List[PlaceResult] = field(default_factory=list)
    matched_place: Optional[PlaceResult] = None
    placemark: Optional[Placemark] = None
    resolution: Optional[PlaceResolution] = None

    @property
    def state(self) -> ResolverState:
        return self.states[-1]

    def advance(self, state: ResolverState) -> None:
        self.states.append(state)


def join_address(street_number: Optional[str], street_name: Optional[str]) -> Optional[str]:
    """'221B' + 'Baker St' -> '221B Baker St'; missing parts are skipped; nothing -> None."""
    parts = [p for p in (street_number, street_name) if p]
    return " ".join(parts) if parts else None


def has_text(best_text: Optional[str]) -> bool:
    return bool(best_text and best_text.strip())


def transition_from_start(best_text: Optional[str]) -> ResolverState:
    return ResolverState.TEXT_FOUND if has_text(best_text) else ResolverState.NO_TEXT


def transition_from_search(results: List[PlaceResult]) -> ResolverState:
    return ResolverState.STORE_VERIFIED if results else ResolverState.STORE_UNVERIFIED


def store_resolution(place: PlaceResult, device_location: Coordinate,
                     best_text: Optional[str]) -> PlaceResolution:
    """Resolution adopted from a verified nearby place."""
    verified_name = place.name or best_text
    return PlaceResolution(
        final_location=Coordinate(
            latitude=place.coordinate.latitude,
            longitude=place.coordinate.longitude,
            altitude=device_location.altitude,
        ),
        verified_name=verified_name,
        city=place.city,
        state=place.state,
        country=place.country,
        address=join_address(place.street_number, place.street_name),
        phone_number=place.phone,
        category=categorize(place.category, verified_name),
        source=ResolutionSource.STORE_MATCH,
    )


def geocoded_resolution(placemark: Optional[Placemark], location: Coordinate,
                        best_text: Optional[str]) -> PlaceResolution:
    """Resolution built from reverse geocoding the device location."""
    category = categorize(None, best_text) if has_text(best_text) else OTHER
    if placemark is None:
        return PlaceResolution(final_location=location, category=category,
                               source=ResolutionSource.NONE)
    return PlaceResolution(
        final_location=location,
        city=placemark.city,
        state=placemark.state,
        country=placemark.country,
        address=join_address(placemark.street_number, placemark.street_name),
        category=category,
        source=ResolutionSource.REVERSE_GEOCODE,
    )


class PlaceResolver:
    """
    Drives the resolution state machine against the search and geocode services.
    """

    def __init__(self, search: PlaceSearch, geocoder: ReverseGeocoder,
                 radius_meters: float = SEARCH_RADIUS_M,
                 search_timeout: float = 8.0, geocode_timeout: float = 8.0):
        """
        Args:
            search: Nearby-place search service
            geocoder: Reverse geocoding service
            radius_meters: Search radius around the device
            search_timeout: Seconds to wait for the search before falling back
            geocode_timeout: Seconds to wait for the geocoder before giving up
        """
        self.search = search
        self.geocoder = geocoder
        self.radius_meters = radius_meters
        self.search_timeout = search_timeout
        self.geocode_timeout = geocode_timeout

    def _call(self, label: str, timeout: float, fn, *args):
        """
        Run one external call with a deadline. Errors and timeouts are logged
        and reported as None so the state machine falls through.

        Each call gets its own worker thread. A call that overruns its deadline
        is left to finish on that thread and its result is dropped; it never
        holds up a later call.
        """
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="placelens-geo")
        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            log.warning("%s timed out after %.1fs", label, timeout)
        except Exception as e:
            log.warning("%s failed: %s", label, e)
        finally:
            executor.shutdown(wait=False)
        return None

    def resolve(self, best_text: Optional[str], device_location: Coordinate,
                is_current: Optional[Callable[[], bool]] = None) -> Optional[ResolutionTrace]:
        """
        Resolve a capture's place.

        Args:
            best_text: Top-ranked sign text (None or empty when nothing was read)
            device_location: GPS fix at capture time
            is_current: Checked after each external call; returning False
                        abandons the resolution

        Returns:
            The trace ending in RESOLVED, or None if abandoned
        """
        still_current = is_current or (lambda: True)
        trace = ResolutionTrace(best_text=best_text, device_location=device_location)

        trace.advance(transition_from_start(best_text))

        if trace.state is ResolverState.TEXT_FOUND:
            query = best_text.strip()
            log.info("Searching for nearby '%s'...", query)
            results = self._call(f"Search for '{query}'", self.search_timeout,
                                 self.search.search, query, device_location, self.radius_meters)
            if not still_current():
                return None
            trace.search_results = list(results or [])
            trace.advance(transition_from_search(trace.search_results))

            if trace.state is ResolverState.STORE_VERIFIED:
                place = nearest_place(trace.search_results, device_location)
                trace.matched_place = place
                trace.resolution = store_resolution(place, device_location, best_text)
                log.info("Found '%s' %dm away", place.name,
                         int(distance_meters(device_location, place.coordinate)))
            else:
                log.info("No nearby place found for '%s', using current location", query)

        if trace.resolution is None:
            trace.placemark = self._call("Reverse geocode", self.geocode_timeout,
                                         self.geocoder.reverse_geocode, device_location)
            if not still_current():
                return None
            trace.advance(ResolverState.GEOCODED)
            trace.resolution = geocoded_resolution(trace.placemark, device_location, best_text)

        trace.advance(ResolverState.RESOLVED)
        return trace
