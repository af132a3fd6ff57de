"""
Place Search and Reverse Geocoding Services

The resolver talks to two collaborators:

    PlaceSearch.search(query, center, radius_meters) -> [PlaceResult]
    ReverseGeocoder.reverse_geocode(coordinate)      -> Placemark | None

"No results" is an empty list / None. Transport and parsing problems raise
SearchFailed / GeocodeFailed; the resolver treats those exactly like an empty
answer.

The Nominatim implementations query an OpenStreetMap Nominatim server over
HTTP. Respect the server's usage policy (a real User-Agent, at most about one
request per second on the public instance).
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import requests

from placelens.app_logger import get_logger
from placelens.errors import GeocodeFailed, SearchFailed
from placelens.gps_utils import region_bounds
from placelens.models import Coordinate, PlaceResult, Placemark

log = get_logger(__name__)


class PlaceSearch(ABC):
    @abstractmethod
    def search(self, query: str, center: Coordinate, radius_meters: float) -> List[PlaceResult]:
        raise NotImplementedError


class ReverseGeocoder(ABC):
    @abstractmethod
    def reverse_geocode(self, coordinate: Coordinate) -> Optional[Placemark]:
        raise NotImplementedError


# OSM (class, type) -> structured category code understood by categories.py
_OSM_TYPE_CODES: Dict[str, Dict[str, str]] = {
    'amenity': {
        'restaurant': 'restaurant', 'fast_food': 'fast_food', 'food_court': 'food_court',
        'ice_cream': 'ice_cream', 'cafe': 'cafe', 'bar': 'bar', 'pub': 'pub',
        'biergarten': 'bar', 'nightclub': 'nightclub', 'cinema': 'cinema',
        'theatre': 'theater', 'casino': 'casino', 'pharmacy': 'pharmacy',
        'hospital': 'hospital', 'clinic': 'clinic', 'dentist': 'dentist',
        'doctors': 'doctors', 'bank': 'bank', 'atm': 'atm', 'post_office': 'post_office',
        'police': 'police', 'fire_station': 'fire_station', 'library': 'library',
        'school': 'school', 'university': 'university', 'fuel': 'gas_station',
        'parking': 'parking', 'car_rental': 'car_rental', 'charging_station': 'ev_charger',
        'marketplace': 'food_market',
    },
    'shop': {
        'bakery': 'bakery', 'supermarket': 'supermarket', 'mall': 'mall',
        'clothes': 'clothes', 'books': 'bookstore', 'convenience': 'convenience',
        'department_store': 'department_store', 'coffee': 'coffee_shop',
        'laundry': 'laundry', 'dry_cleaning': 'laundry', 'wine': 'winery',
    },
    'tourism': {
        'hotel': 'hotel', 'motel': 'hotel', 'hostel': 'hotel', 'guest_house': 'hotel',
        'museum': 'museum', 'gallery': 'museum', 'zoo': 'zoo', 'theme_park': 'amusement_park',
        'camp_site': 'campground',
    },
    'leisure': {
        'park': 'park', 'nature_reserve': 'national_park', 'stadium': 'stadium',
        'fitness_centre': 'fitness_center', 'sports_centre': 'fitness_center',
        'marina': 'marina', 'bowling_alley': 'nightlife',
    },
    'natural': {'beach': 'beach'},
    'aeroway': {'aerodrome': 'airport', 'terminal': 'airport'},
    'railway': {'station': 'public_transport'},
    'public_transport': {'station': 'public_transport'},
    'craft': {'brewery': 'brewery', 'winery': 'winery'},
}


def osm_category_code(osm_class: Optional[str], osm_type: Optional[str]) -> Optional[str]:
    """Structured category code for an OSM feature, or None if unmapped."""
    if not osm_class:
        return None
    code = _OSM_TYPE_CODES.get(osm_class, {}).get(osm_type or '')
    if code is None and osm_class == 'shop':
        return 'store'
    return code


def placemark_from_address(address: Optional[Dict]) -> Placemark:
    """Build a Placemark from a Nominatim addressdetails block."""
    address = address or {}
    city = (address.get('city') or address.get('town') or address.get('village')
            or address.get('hamlet') or address.get('suburb'))
    return Placemark(
        city=city,
        state=address.get('state'),
        country=address.get('country'),
        street_number=address.get('house_number'),
        street_name=address.get('road') or address.get('pedestrian'),
    )


def place_from_nominatim(item: Dict) -> PlaceResult:
    """Convert one Nominatim jsonv2 search hit into a PlaceResult."""
    placemark = placemark_from_address(item.get('address'))
    extratags = item.get('extratags') or {}
    name = item.get('name') or (item.get('display_name') or '').split(',')[0].strip()
    return PlaceResult(
        name=name,
        coordinate=Coordinate(latitude=float(item['lat']), longitude=float(item['lon'])),
        city=placemark.city,
        state=placemark.state,
        country=placemark.country,
        street_number=placemark.street_number,
        street_name=placemark.street_name,
        phone=extratags.get('phone') or extratags.get('contact:phone'),
        category=osm_category_code(item.get('category') or item.get('class'), item.get('type')),
    )


class _NominatimClient:
    def __init__(self, base_url: str = "https://nominatim.openstreetmap.org",
                 user_agent: str = "placelens/0.1", timeout: float = 8.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

    def _get(self, path: str, params: Dict):
        response = self.session.get(f"{self.base_url}/{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()


class NominatimPlaceSearch(_NominatimClient, PlaceSearch):
    """Nearby-place search bounded to a square region around the device."""

    def __init__(self, base_url: str = "https://nominatim.openstreetmap.org",
                 user_agent: str = "placelens/0.1", timeout: float = 8.0,
                 session: Optional[requests.Session] = None, limit: int = 10):
        super().__init__(base_url, user_agent, timeout, session)
        self.limit = limit

    def search(self, query: str, center: Coordinate, radius_meters: float) -> List[PlaceResult]:
        min_lon, min_lat, max_lon, max_lat = region_bounds(center, radius_meters)
        params = {
            'q': query,
            'format': 'jsonv2',
            'addressdetails': 1,
            'extratags': 1,
            'bounded': 1,
            'viewbox': f"{min_lon},{max_lat},{max_lon},{min_lat}",
            'limit': self.limit,
        }
        try:
            items = self._get('search', params)
            return [place_from_nominatim(item) for item in items or []]
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            raise SearchFailed(f"Nominatim search for '{query}' failed: {e}") from e


class NominatimReverseGeocoder(_NominatimClient, ReverseGeocoder):
    """Reverse geocoding of the device location."""

    def reverse_geocode(self, coordinate: Coordinate) -> Optional[Placemark]:
        params = {
            'lat': coordinate.latitude,
            'lon': coordinate.longitude,
            'format': 'jsonv2',
            'addressdetails': 1,
        }
        try:
            data = self._get('reverse', params)
        except (requests.RequestException, ValueError) as e:
            raise GeocodeFailed(f"Nominatim reverse geocode failed: {e}") from e

        if not isinstance(data, dict) or 'error' in data:
            log.info("No placemark for %.6f, %.6f", coordinate.latitude, coordinate.longitude)
            return None
        return placemark_from_address(data.get('address'))
