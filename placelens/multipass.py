"""
Multi-Pass Recognition

Runs the recognizer five times over one capture:

    standard              raw image,            accurate, conf > 0.5
    enhanced-aggressive   aggressive variant,   accurate, conf > 0.2, height >= 0.03
    enhanced-gentle       gentle variant,       accurate, conf > 0.2, height >= 0.03
    enhanced-color        color-boost variant,  accurate, conf > 0.2, height >= 0.03
    fast                  raw image,            fast,     conf > 0.6

Passes have no data dependency on each other and run concurrently on a
thread pool; the merged detections are joined before scoring. The same text
surviving several independent passes is deliberately kept once per pass:
repeated agreement is the strongest evidence the scorer gets.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

import numpy as np

from placelens.app_logger import get_logger
from placelens.errors import RecognitionUnavailable
from placelens.image_preprocessing import PreprocessingMode, preprocess
from placelens.models import OriginMethod, RawDetection, RecognitionMode
from placelens.ocr.recognize import TextRecognizer, passes_filters

log = get_logger(__name__)


@dataclass(frozen=True)
class PassSpec:
    method: OriginMethod
    preprocessing: Optional[PreprocessingMode]
    mode: RecognitionMode
    min_confidence: float
    min_text_height: Optional[float] = None


PASSES = (
    PassSpec(OriginMethod.STANDARD, None, RecognitionMode.ACCURATE, 0.5),
    PassSpec(OriginMethod.ENHANCED_AGGRESSIVE, PreprocessingMode.AGGRESSIVE,
             RecognitionMode.ACCURATE, 0.2, 0.03),
    PassSpec(OriginMethod.ENHANCED_GENTLE, PreprocessingMode.GENTLE,
             RecognitionMode.ACCURATE, 0.2, 0.03),
    PassSpec(OriginMethod.ENHANCED_COLOR_BOOST, PreprocessingMode.COLOR_BOOST,
             RecognitionMode.ACCURATE, 0.2, 0.03),
    PassSpec(OriginMethod.FAST, None, RecognitionMode.FAST, 0.6),
)


class MultiPassOrchestrator:
    """
    Fans one capture out to every recognition pass and merges the results.
    """

    def __init__(self, recognizer: TextRecognizer, max_workers: int = len(PASSES)):
        """
        Args:
            recognizer: Engine used for every pass (must be safe to call from worker threads)
            max_workers: Thread pool size; 1 runs the passes one after another
        """
        self.recognizer = recognizer
        self.max_workers = max(1, max_workers)

    def run_pass(self, image: np.ndarray, spec: PassSpec) -> List[RawDetection]:
        """
        Run one pass. Never raises: a missing variant or an engine failure
        yields no detections for this pass only.
        """
        source = image
        if spec.preprocessing is not None:
            source = preprocess(image, spec.preprocessing)
            if source is None:
                log.info("Skipping %s pass: no preprocessed image", spec.method.value)
                return []

        try:
            found = self.recognizer.recognize(
                source, spec.mode, spec.min_confidence, spec.min_text_height
            )
        except RecognitionUnavailable as e:
            log.warning("%s pass: recognition unavailable: %s", spec.method.value, e)
            return []
        except Exception as e:
            log.error("%s pass failed: %s", spec.method.value, e, exc_info=True)
            return []

        return [
            replace(d, origin_method=spec.method)
            for d in found or []
            if passes_filters(d, spec.min_confidence, spec.min_text_height)
        ]

    def run(self, image: np.ndarray) -> List[RawDetection]:
        """
        Run all passes and merge their detections.

        Args:
            image: BGR capture (H, W, 3)

        Returns:
            All surviving detections, tagged with their pass, in pass-table order
        """
        if self.max_workers == 1:
            per_pass = [self.run_pass(image, spec) for spec in PASSES]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers,
                                    thread_name_prefix="placelens-ocr") as ex:
                futures = [ex.submit(self.run_pass, image, spec) for spec in PASSES]
                per_pass = [f.result() for f in futures]

        merged = [d for detections in per_pass for d in detections]
        log.debug("Multi-pass recognition: %d detection(s) across %d pass(es)",
                  len(merged), sum(1 for p in per_pass if p))
        return merged


def summarize_by_method(detections: List[RawDetection], top_n: int = 3) -> Dict[str, List[str]]:
    """Highest-confidence texts per pass, keyed by method name in sorted order."""
    by_method: Dict[str, List[RawDetection]] = {}
    for d in detections:
        by_method.setdefault(d.origin_method.value, []).append(d)
    return {
        method: [d.text for d in sorted(items, key=lambda d: d.confidence, reverse=True)[:top_n]]
        for method, items in sorted(by_method.items())
    }
