"""
Capture Pipeline

One capture = recognize the sign text, resolve the place, persist the photo.

Captures run on a background executor and are identified by a generation
number. Starting a new capture (or calling cancel()) bumps the generation;
an older capture keeps running but is never committed, so a retake can never
be overwritten by the late result of the photo it replaced.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from placelens import brightness, scoring
from placelens.app_logger import get_logger, setup_logging
from placelens.config import PipelineConfig, load_config
from placelens.errors import PersistenceFailed
from placelens.geo_services import (NominatimPlaceSearch, NominatimReverseGeocoder,
                                    PlaceSearch, ReverseGeocoder)
from placelens.models import Coordinate, PhotoRecord, PlaceResolution, RecognitionResult
from placelens.multipass import MultiPassOrchestrator
from placelens.ocr.recognize import EasyOCRRecognizer, TextRecognizer
from placelens.ocr_logger import OCRLogger
from placelens.photo_store import PhotoStore
from placelens.place_resolver import PlaceResolver

log = get_logger(__name__)


@dataclass
class CaptureOutcome:
    generation: int
    recognition: Optional[RecognitionResult] = None
    resolution: Optional[PlaceResolution] = None
    photo_id: Optional[int] = None
    committed: bool = False


class CapturePipeline:
    """
    Drives recognition, resolution and persistence for each capture.
    """

    def __init__(
        self,
        config: PipelineConfig,
        recognizer: TextRecognizer,
        search: PlaceSearch,
        geocoder: ReverseGeocoder,
        photo_store: PhotoStore,
        ocr_logger: Optional[OCRLogger] = None,
    ):
        self.config = config
        self.orchestrator = MultiPassOrchestrator(recognizer, max_workers=config.recognition_workers)
        self.resolver = PlaceResolver(
            search,
            geocoder,
            radius_meters=config.search_radius_m,
            search_timeout=config.search_timeout_s,
            geocode_timeout=config.geocode_timeout_s,
        )
        self.photo_store = photo_store
        self.ocr_logger = ocr_logger

        self._generation = 0
        self._generation_lock = threading.Lock()
        self._in_flight = set()

    @classmethod
    def from_config(cls, config: Optional[PipelineConfig] = None) -> "CapturePipeline":
        """Build a pipeline with EasyOCR, Nominatim and the SQLite stores."""
        config = config or load_config()
        setup_logging(base_dir=config.data_dir, log_level=config.log_level)

        recognizer = EasyOCRRecognizer(languages=config.ocr_languages, gpu=config.ocr_gpu)
        search = NominatimPlaceSearch(base_url=config.nominatim_url,
                                      user_agent=config.user_agent,
                                      timeout=config.search_timeout_s)
        geocoder = NominatimReverseGeocoder(base_url=config.nominatim_url,
                                            user_agent=config.user_agent,
                                            timeout=config.geocode_timeout_s)
        photo_store = PhotoStore(config.photo_db_path)
        ocr_logger = None
        if config.debug_analytics:
            ocr_logger = OCRLogger(config.analytics_db_path, config.analytics_images_dir)

        return cls(config, recognizer, search, geocoder, photo_store, ocr_logger)

    # Generations

    @property
    def generation(self) -> int:
        with self._generation_lock:
            return self._generation

    def next_generation(self) -> int:
        with self._generation_lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._generation_lock:
            return generation == self._generation

    def cancel(self) -> None:
        """Invalidate whatever capture is in flight."""
        stale = self.next_generation() - 1
        log.info("Capture %d cancelled", stale)

    # Stages

    def recognize(self, image: np.ndarray) -> RecognitionResult:
        """
        Run every recognition pass, analyze brightness and rank the candidates.

        Args:
            image: BGR capture (H, W, 3)

        Returns:
            RecognitionResult with the best text (None if nothing was read)
        """
        start = time.time()
        detections = self.orchestrator.run(image)
        grid = brightness.analyze(image)
        best_text, candidates = scoring.score(detections, grid)
        elapsed_ms = int((time.time() - start) * 1000)

        result = RecognitionResult(
            best_text=best_text,
            candidates=candidates,
            detections=detections,
            brightness_grid=grid,
            processing_time_ms=elapsed_ms,
        )
        log.info("Recognized %r from %d detection(s) in %dms",
                 best_text, len(detections), elapsed_ms)

        if self.ocr_logger is not None:
            try:
                self.ocr_logger.record(image, result)
            except Exception as e:
                log.warning("OCR analytics logging failed: %s", e)

        return result

    def process_capture(
        self,
        image: Union[np.ndarray, bytes],
        image_bytes: Optional[bytes],
        location: Coordinate,
        generation: Optional[int] = None,
    ) -> CaptureOutcome:
        """
        Recognize, resolve and persist one capture.

        Args:
            image: BGR capture, or its encoded bytes
            image_bytes: Encoded image to store (defaults to image when it is bytes)
            location: Device GPS fix at capture time
            generation: Capture generation; None claims the current one

        Returns:
            CaptureOutcome; committed is False when the capture went stale

        Raises:
            PersistenceFailed: if the photo could not be saved (carries the resolution)
        """
        if generation is None:
            generation = self.generation
        outcome = CaptureOutcome(generation=generation)

        if isinstance(image, (bytes, bytearray)):
            image_bytes = image_bytes if image_bytes is not None else bytes(image)
            image = brightness.decode_image(image)
        if image_bytes is None:
            raise ValueError("image_bytes is required when image is an array")

        if not self.is_current(generation):
            log.info("Capture %d superseded before recognition", generation)
            return outcome

        outcome.recognition = self.recognize(image)
        if not self.is_current(generation):
            log.info("Capture %d superseded after recognition", generation)
            return outcome

        best_text = outcome.recognition.best_text
        trace = self.resolver.resolve(best_text, location,
                                      is_current=lambda: self.is_current(generation))
        if trace is None:
            log.info("Capture %d superseded during place resolution", generation)
            return outcome
        outcome.resolution = trace.resolution

        record = PhotoRecord.from_resolution(
            trace.resolution,
            image_bytes=image_bytes,
            extracted_text=trace.resolution.verified_name or best_text,
        )

        with self._generation_lock:
            if generation != self._generation:
                log.info("Capture %d superseded, resolution discarded", generation)
                return outcome
            try:
                outcome.photo_id = self.photo_store.insert_photo(record)
            except PersistenceFailed as e:
                raise PersistenceFailed(str(e), resolution=trace.resolution) from e
            outcome.committed = True

        log.info("Capture %d saved as photo %d (%s, %s)", generation, outcome.photo_id,
                 record.extracted_text, record.category)
        return outcome

    def submit_capture(
        self,
        image: Union[np.ndarray, bytes],
        image_bytes: Optional[bytes],
        location: Coordinate,
    ) -> "Future[CaptureOutcome]":
        """
        Start a new capture in the background, superseding any in flight.

        Every capture runs on its own worker so a retake starts at once even
        while an older capture is still waiting on a slow service.
        """
        generation = self.next_generation()
        log.info("Capture %d started at %.6f, %.6f",
                 generation, location.latitude, location.longitude)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="placelens-capture")
        future = executor.submit(self.process_capture, image, image_bytes, location, generation)
        executor.shutdown(wait=False)

        with self._generation_lock:
            self._in_flight.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._generation_lock:
            self._in_flight.discard(future)

    def correct_label(self, photo_id: int, text: str) -> bool:
        """
        Replace a saved photo's label with the user's correction.

        Returns:
            True if the photo exists and was updated
        """
        photo = self.photo_store.get_photo(photo_id)
        if photo is None:
            log.warning("Cannot correct label: photo %d not found", photo_id)
            return False

        updated = self.photo_store.update_label(photo_id, text)
        if updated and self.ocr_logger is not None and photo.extracted_text:
            try:
                self.ocr_logger.log_correction(photo.extracted_text, text)
            except Exception as e:
                log.warning("Could not record correction in analytics: %s", e)
        return updated

    def shutdown(self, wait: bool = True) -> None:
        """Invalidate any capture in flight and optionally wait for it to finish."""
        self.cancel()
        with self._generation_lock:
            pending = list(self._in_flight)
        if wait and pending:
            wait_futures(pending)
