"""
Data Model

Value types passed between the recognition, scoring and resolution stages.
All bounding boxes are normalized to [0, 1] with the origin at the
bottom-left corner of the image (y grows upwards).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


# Row-major luminance samples in [0, 1]; every row has the same length.
BrightnessGrid = List[List[float]]


@dataclass(frozen=True)
class Rect:
    """Normalized rectangle, origin bottom-left."""
    x: float
    y: float
    width: float
    height: float

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2.0

    @property
    def area(self) -> float:
        return self.width * self.height


class OriginMethod(Enum):
    """Recognition pass that produced a detection."""
    STANDARD = "standard"
    ENHANCED_AGGRESSIVE = "enhanced-aggressive"
    ENHANCED_GENTLE = "enhanced-gentle"
    ENHANCED_COLOR_BOOST = "enhanced-color"
    FAST = "fast"


class RecognitionMode(Enum):
    ACCURATE = "accurate"
    FAST = "fast"


@dataclass(frozen=True)
class RawDetection:
    """One piece of text reported by a single recognition pass."""
    text: str
    confidence: float
    bounding_box: Rect
    origin_method: OriginMethod = OriginMethod.STANDARD

    @property
    def size(self) -> float:
        return self.bounding_box.area


@dataclass(frozen=True)
class ScoredCandidate:
    text: str
    score: float
    confidence: float
    debug: str = ""

    def to_dict(self) -> Dict:
        return {'text': self.text, 'score': self.score, 'confidence': self.confidence}


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float
    altitude: float = 0.0


@dataclass(frozen=True)
class Placemark:
    """Address components returned by reverse geocoding."""
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None


@dataclass(frozen=True)
class PlaceResult:
    """One hit from the nearby-place search."""
    name: str
    coordinate: Coordinate
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    phone: Optional[str] = None
    category: Optional[str] = None


class ResolutionSource(Enum):
    STORE_MATCH = "store-match"
    REVERSE_GEOCODE = "reverse-geocode"
    NONE = "none"


@dataclass(frozen=True)
class PlaceResolution:
    """Final identity and location attached to a capture."""
    final_location: Coordinate
    category: str
    source: ResolutionSource
    verified_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None


@dataclass
class RecognitionResult:
    """Output of the recognition half of a capture (passes + scoring)."""
    best_text: Optional[str]
    candidates: List[ScoredCandidate]
    detections: List[RawDetection]
    brightness_grid: BrightnessGrid
    processing_time_ms: int = 0


@dataclass
class PhotoRecord:
    """A saved capture. Only extracted_text changes after insert (label correction)."""
    timestamp: datetime
    image_bytes: bytes
    latitude: float
    longitude: float
    altitude: float = 0.0
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    extracted_text: Optional[str] = None
    category: Optional[str] = None
    id: Optional[int] = field(default=None, compare=False)

    @classmethod
    def from_resolution(
        cls,
        resolution: PlaceResolution,
        image_bytes: bytes,
        extracted_text: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> "PhotoRecord":
        location = resolution.final_location
        return cls(
            timestamp=timestamp or datetime.now(),
            image_bytes=image_bytes,
            latitude=location.latitude,
            longitude=location.longitude,
            altitude=location.altitude,
            city=resolution.city,
            state=resolution.state,
            country=resolution.country,
            address=resolution.address,
            phone_number=resolution.phone_number,
            extracted_text=extracted_text,
            category=resolution.category,
        )
