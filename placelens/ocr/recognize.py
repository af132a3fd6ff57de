"""
Text Recognition Adapter

Boundary between the pipeline and whatever engine actually reads text.
Engines implement TextRecognizer.recognize() and return RawDetections with
bounding boxes normalized to [0, 1], origin bottom-left. Detections are
returned untagged (STANDARD); the multi-pass orchestrator tags them with the
pass that ran.

EasyOCRRecognizer is the on-device engine used in production.
"""

import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import cv2
import numpy as np

from placelens.app_logger import get_logger
from placelens.errors import RecognitionUnavailable
from placelens.models import RawDetection, RecognitionMode, Rect

log = get_logger(__name__)

try:
    import easyocr
    EASYOCR_AVAILABLE = True
except ImportError:
    EASYOCR_AVAILABLE = False


class TextRecognizer(ABC):
    """
    Interface for text-recognition engines.

    Engines must return literal text hypotheses with their confidence and a
    normalized bottom-left-origin box. They must not merge, correct or rank.
    """

    @abstractmethod
    def recognize(
        self,
        image: np.ndarray,
        mode: RecognitionMode,
        min_confidence: float,
        min_text_height: Optional[float] = None,
    ) -> List[RawDetection]:
        raise NotImplementedError


def quad_to_rect(points: Sequence[Sequence[float]], image_width: int, image_height: int) -> Rect:
    """
    Convert a pixel-space quadrilateral (top-left origin) to a normalized
    axis-aligned Rect with bottom-left origin.
    """
    xs = [float(p[0]) for p in points]
    ys = [float(p[1]) for p in points]
    x_min = max(0.0, min(xs))
    x_max = min(float(image_width), max(xs))
    y_min = max(0.0, min(ys))
    y_max = min(float(image_height), max(ys))

    width = max(0.0, x_max - x_min) / image_width
    height = max(0.0, y_max - y_min) / image_height
    x = x_min / image_width
    # Flip: bottom edge measured from the bottom of the image
    y = 1.0 - (y_max / image_height)
    return Rect(x=x, y=y, width=width, height=height)


def passes_filters(detection: RawDetection, min_confidence: float,
                   min_text_height: Optional[float] = None) -> bool:
    """Strict confidence floor plus optional minimum normalized text height."""
    if not detection.text.strip():
        return False
    if detection.confidence <= min_confidence:
        return False
    if min_text_height is not None and detection.bounding_box.height < min_text_height:
        return False
    return True


class EasyOCRRecognizer(TextRecognizer):
    """
    EasyOCR wrapper for storefront signage.

    Accurate mode runs the beam-search decoder over the full canvas. Fast mode
    uses the greedy decoder on a smaller canvas, trading small text for speed.
    """

    ACCURATE_CANVAS = 2560
    FAST_CANVAS = 1280

    def __init__(self,
                 languages: Optional[List[str]] = None,
                 gpu: bool = False,
                 model_storage_directory: Optional[str] = None,
                 download_enabled: bool = True):
        """
        Initialize EasyOCR recognizer.

        Args:
            languages: Languages to load (default: ['en'])
            gpu: Whether to use GPU acceleration
            model_storage_directory: Directory to store/download models (default ~/.EasyOCR/)
            download_enabled: Whether to download models if not found

        Raises:
            RecognitionUnavailable: if EasyOCR is not installed or fails to load
        """
        if not EASYOCR_AVAILABLE:
            raise RecognitionUnavailable(
                "EasyOCR not available. Install with: pip install easyocr"
            )

        self.languages = languages or ['en']
        self.gpu = gpu

        log.info("Initializing EasyOCR reader (languages=%s, gpu=%s)", self.languages, gpu)
        try:
            self.reader = easyocr.Reader(
                self.languages,
                gpu=gpu,
                model_storage_directory=model_storage_directory,
                download_enabled=download_enabled,
                verbose=False,
            )
        except Exception as e:
            raise RecognitionUnavailable(f"Failed to initialize EasyOCR: {e}") from e

        # One reader serves every pass; readtext is not thread-safe
        self._inference_lock = threading.Lock()

    def recognize(
        self,
        image: np.ndarray,
        mode: RecognitionMode,
        min_confidence: float,
        min_text_height: Optional[float] = None,
    ) -> List[RawDetection]:
        """
        Read all text lines in an image.

        Args:
            image: BGR image (H, W, 3) or grayscale (H, W)
            mode: ACCURATE or FAST
            min_confidence: Detections must score strictly above this
            min_text_height: Optional minimum box height as a fraction of image height

        Returns:
            Detections in engine order

        Raises:
            RecognitionUnavailable: if the engine fails while reading
        """
        if image is None or image.size == 0:
            return []

        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        h, w = image.shape[:2]

        readtext_params = {
            'detail': 1,
            'paragraph': False,
        }
        if mode is RecognitionMode.FAST:
            readtext_params.update(decoder='greedy', canvas_size=self.FAST_CANVAS)
        else:
            readtext_params.update(decoder='beamsearch', beamWidth=5, canvas_size=self.ACCURATE_CANVAS)

        try:
            with self._inference_lock:
                results = self.reader.readtext(image, **readtext_params)
        except Exception as e:
            raise RecognitionUnavailable(f"EasyOCR failed ({mode.value}): {e}") from e

        detections = []
        for bbox, text, conf in results or []:
            detection = RawDetection(
                text=text.strip(),
                confidence=float(conf),
                bounding_box=quad_to_rect(bbox, w, h),
            )
            if passes_filters(detection, min_confidence, min_text_height):
                detections.append(detection)
        return detections
