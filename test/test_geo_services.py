import unittest

import requests

from fakes import UNION_SQUARE, luigis
from placelens.errors import GeocodeFailed, SearchFailed
from placelens.geo_services import (NominatimPlaceSearch, NominatimReverseGeocoder,
                                    osm_category_code, place_from_nominatim)
from placelens.gps_utils import (distance_meters, meters_to_gps, nearest_place, region_bounds,
                                 validate_gps_coordinate)
from placelens.models import Coordinate


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError("%d error" % self.status)

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payload=None, status=200, error=None):
        self.headers = {}
        self.payload = payload
        self.status = status
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return FakeResponse(self.payload, self.status)


LUIGIS_HIT = {
    'lat': '40.7368',
    'lon': '-73.9911',
    'category': 'amenity',
    'type': 'restaurant',
    'name': "Luigi's",
    'display_name': "Luigi's, 12, East 16th Street, Manhattan, New York, United States",
    'address': {
        'house_number': '12',
        'road': 'East 16th Street',
        'city': 'New York',
        'state': 'New York',
        'country': 'United States',
    },
    'extratags': {'phone': '+1 212 555 0100'},
}


class TestGpsUtils(unittest.TestCase):

    def test_validate(self):
        self.assertTrue(validate_gps_coordinate(40.7, -73.9))
        self.assertFalse(validate_gps_coordinate(91.0, 0.0))
        self.assertFalse(validate_gps_coordinate(0.0, -181.0))

    def test_distance(self):
        north = Coordinate(UNION_SQUARE.latitude + 0.0009, UNION_SQUARE.longitude)
        self.assertAlmostEqual(distance_meters(UNION_SQUARE, north), 100.0, delta=1.0)
        self.assertEqual(distance_meters(UNION_SQUARE, UNION_SQUARE), 0.0)

    def test_meters_to_gps_round_trip(self):
        lat, lon = meters_to_gps(300.0, 400.0, UNION_SQUARE.latitude, UNION_SQUARE.longitude)
        self.assertAlmostEqual(distance_meters(UNION_SQUARE, Coordinate(lat, lon)), 500.0, delta=0.5)

    def test_region_bounds(self):
        min_lon, min_lat, max_lon, max_lat = region_bounds(UNION_SQUARE, 500.0)
        self.assertLess(min_lon, UNION_SQUARE.longitude)
        self.assertGreater(max_lon, UNION_SQUARE.longitude)
        self.assertLess(min_lat, UNION_SQUARE.latitude)
        self.assertGreater(max_lat, UNION_SQUARE.latitude)
        north_edge = Coordinate(max_lat, UNION_SQUARE.longitude)
        self.assertAlmostEqual(distance_meters(UNION_SQUARE, north_edge), 500.0, delta=0.5)

    def test_nearest_place(self):
        far = luigis(latitude=40.7500)
        near = luigis(latitude=40.7362)
        self.assertIs(nearest_place([far, near], UNION_SQUARE), near)
        self.assertIsNone(nearest_place([], UNION_SQUARE))

    def test_nearest_place_tie_keeps_first(self):
        first = luigis(name="First")
        second = luigis(name="Second")
        self.assertIs(nearest_place([first, second], UNION_SQUARE), first)


class TestNominatimParsing(unittest.TestCase):

    def test_osm_category_code(self):
        self.assertEqual(osm_category_code('amenity', 'restaurant'), 'restaurant')
        self.assertEqual(osm_category_code('shop', 'bicycle'), 'store')
        self.assertEqual(osm_category_code('tourism', 'motel'), 'hotel')
        self.assertIsNone(osm_category_code('amenity', 'bench'))
        self.assertIsNone(osm_category_code(None, 'restaurant'))

    def test_place_from_nominatim(self):
        place = place_from_nominatim(LUIGIS_HIT)
        self.assertEqual(place.name, "Luigi's")
        self.assertEqual(place.coordinate, Coordinate(40.7368, -73.9911))
        self.assertEqual(place.street_number, '12')
        self.assertEqual(place.street_name, 'East 16th Street')
        self.assertEqual(place.city, 'New York')
        self.assertEqual(place.phone, '+1 212 555 0100')
        self.assertEqual(place.category, 'restaurant')

    def test_name_falls_back_to_display_name(self):
        hit = dict(LUIGIS_HIT, name='')
        self.assertEqual(place_from_nominatim(hit).name, "Luigi's")


class TestNominatimClients(unittest.TestCase):

    def test_search_request(self):
        session = FakeSession([LUIGIS_HIT])
        search = NominatimPlaceSearch(base_url="http://nominatim.test/", user_agent="tests",
                                      timeout=3.0, session=session)

        results = search.search("Luigi's", UNION_SQUARE, 500.0)

        self.assertEqual([r.name for r in results], ["Luigi's"])
        url, params, timeout = session.requests[0]
        self.assertEqual(url, "http://nominatim.test/search")
        self.assertEqual(params['q'], "Luigi's")
        self.assertEqual(params['bounded'], 1)
        self.assertEqual(len(params['viewbox'].split(',')), 4)
        self.assertEqual(timeout, 3.0)
        self.assertEqual(session.headers['User-Agent'], "tests")

    def test_search_no_results(self):
        search = NominatimPlaceSearch(session=FakeSession([]))
        self.assertEqual(search.search("Nowhere", UNION_SQUARE, 500.0), [])

    def test_search_transport_error(self):
        search = NominatimPlaceSearch(session=FakeSession(error=requests.ConnectionError("down")))
        with self.assertRaises(SearchFailed):
            search.search("Luigi's", UNION_SQUARE, 500.0)

    def test_search_http_error(self):
        search = NominatimPlaceSearch(session=FakeSession([], status=429))
        with self.assertRaises(SearchFailed):
            search.search("Luigi's", UNION_SQUARE, 500.0)

    def test_reverse_geocode(self):
        session = FakeSession({'address': LUIGIS_HIT['address']})
        placemark = NominatimReverseGeocoder(session=session).reverse_geocode(UNION_SQUARE)

        self.assertEqual(placemark.street_number, '12')
        self.assertEqual(placemark.street_name, 'East 16th Street')
        self.assertEqual(placemark.country, 'United States')
        self.assertEqual(session.requests[0][1]['lat'], UNION_SQUARE.latitude)

    def test_reverse_geocode_nothing_found(self):
        session = FakeSession({'error': 'Unable to geocode'})
        self.assertIsNone(NominatimReverseGeocoder(session=session).reverse_geocode(UNION_SQUARE))

    def test_reverse_geocode_error(self):
        session = FakeSession(error=requests.Timeout("slow"))
        with self.assertRaises(GeocodeFailed):
            NominatimReverseGeocoder(session=session).reverse_geocode(UNION_SQUARE)


if __name__ == '__main__':
    unittest.main()
