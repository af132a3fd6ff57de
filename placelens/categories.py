"""
Place Category Classification

Maps a place to one of a fixed set of display categories, either from the
structured category code supplied by the nearby-place search or, when there
is none, from keywords in the recognized sign text.
"""

import re
from typing import Dict, FrozenSet, Optional, Tuple

FOOD = "Food"
CAFE = "Cafe"
ENTERTAINMENT = "Entertainment"
SHOPPING = "Shopping"
TRAVEL = "Travel"
HEALTH = "Health"
SERVICES = "Services"
NATURE = "Nature"
OTHER = "Other"

CATEGORIES = (FOOD, CAFE, ENTERTAINMENT, SHOPPING, TRAVEL, HEALTH, SERVICES, NATURE, OTHER)

# Structured place-category codes -> display category
POI_CATEGORY_MAP: Dict[str, str] = {
    'restaurant': FOOD,
    'bakery': FOOD,
    'brewery': FOOD,
    'winery': FOOD,
    'food_market': FOOD,
    'fast_food': FOOD,
    'food_court': FOOD,
    'ice_cream': FOOD,

    'cafe': CAFE,
    'coffee_shop': CAFE,

    'nightlife': ENTERTAINMENT,
    'bar': ENTERTAINMENT,
    'pub': ENTERTAINMENT,
    'nightclub': ENTERTAINMENT,
    'movie_theater': ENTERTAINMENT,
    'cinema': ENTERTAINMENT,
    'theater': ENTERTAINMENT,
    'museum': ENTERTAINMENT,
    'amusement_park': ENTERTAINMENT,
    'stadium': ENTERTAINMENT,
    'music_venue': ENTERTAINMENT,
    'casino': ENTERTAINMENT,

    'store': SHOPPING,
    'mall': SHOPPING,
    'supermarket': SHOPPING,
    'clothes': SHOPPING,
    'bookstore': SHOPPING,
    'convenience': SHOPPING,
    'department_store': SHOPPING,

    'hotel': TRAVEL,
    'airport': TRAVEL,
    'public_transport': TRAVEL,
    'car_rental': TRAVEL,
    'gas_station': TRAVEL,
    'parking': TRAVEL,
    'ev_charger': TRAVEL,

    'hospital': HEALTH,
    'pharmacy': HEALTH,
    'fitness_center': HEALTH,
    'dentist': HEALTH,
    'doctors': HEALTH,
    'clinic': HEALTH,

    'bank': SERVICES,
    'atm': SERVICES,
    'post_office': SERVICES,
    'police': SERVICES,
    'fire_station': SERVICES,
    'laundry': SERVICES,
    'library': SERVICES,
    'school': SERVICES,
    'university': SERVICES,

    'park': NATURE,
    'national_park': NATURE,
    'beach': NATURE,
    'campground': NATURE,
    'marina': NATURE,
    'zoo': NATURE,
}

# Keyword sets checked in priority order; first match wins
KEYWORD_SETS: Tuple[Tuple[str, FrozenSet[str]], ...] = (
    (FOOD, frozenset({
        'restaurant', 'pizza', 'pizzeria', 'kitchen', 'grill', 'burger', 'burgers',
        'sushi', 'taco', 'tacos', 'taqueria', 'bbq', 'diner', 'bistro', 'noodle',
        'noodles', 'ramen', 'pho', 'curry', 'deli', 'bakery', 'steakhouse',
        'seafood', 'chicken', 'wings', 'eatery', 'food', 'trattoria', 'cantina',
        'dumpling', 'dumplings', 'kebab', 'sandwich', 'sandwiches', 'bagels',
    })),
    (CAFE, frozenset({
        'cafe', 'café', 'coffee', 'espresso', 'tea', 'roasters', 'roastery',
        'latte', 'boba', 'creamery',
    })),
    (ENTERTAINMENT, frozenset({
        'cinema', 'theater', 'theatre', 'movies', 'bar', 'pub', 'club', 'lounge',
        'arcade', 'bowling', 'karaoke', 'casino', 'museum', 'gallery', 'brewpub',
    })),
    (SHOPPING, frozenset({
        'shop', 'store', 'market', 'mall', 'boutique', 'outlet', 'mart',
        'clothing', 'books', 'bookstore', 'supermarket', 'emporium',
    })),
    (TRAVEL, frozenset({
        'hotel', 'inn', 'motel', 'hostel', 'resort', 'airport', 'station',
        'terminal', 'rental', 'suites',
    })),
)

_WORD_RE = re.compile(r"[^\W_]+")


def _normalize_code(code: str) -> str:
    return re.sub(r"[\s\-]+", "_", code.strip().lower())


def categorize_code(structured_category: str) -> str:
    """Map a structured category code; unknown codes are Other."""
    return POI_CATEGORY_MAP.get(_normalize_code(structured_category), OTHER)


def categorize_text(text: str) -> str:
    """Keyword classification of free text; no match is Other."""
    words = set(_WORD_RE.findall(text.lower()))
    for category, keywords in KEYWORD_SETS:
        if words & keywords:
            return category
    return OTHER


def categorize(structured_category: Optional[str] = None, text: Optional[str] = None) -> str:
    """
    Classify a place.

    A structured category code always wins when present. Otherwise the text
    is lower-cased and its words are checked against the Food, Cafe,
    Entertainment, Shopping and Travel keyword sets in that order.

    Args:
        structured_category: Category code from the place search, if any
        text: Place name or recognized sign text, if any

    Returns:
        One of CATEGORIES
    """
    if structured_category:
        return categorize_code(structured_category)
    if text:
        return categorize_text(text)
    return OTHER
