import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fakes import (BROADWAY, UNION_SQUARE, BlockingSearch, FakeGeocoder, FakeRecognizer,
                   FakeSearch, blank_image, luigis, make_detection)
from placelens.capture_pipeline import CapturePipeline
from placelens.categories import FOOD
from placelens.config import PipelineConfig
from placelens.errors import PersistenceFailed, RecognitionUnavailable
from placelens.models import ResolutionSource
from placelens.ocr_logger import OCRLogger
from placelens.photo_store import PhotoStore

IMAGE_BYTES = b"\xff\xd8captured-jpeg\xff\xd9"


class TestCapturePipeline(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.config = PipelineConfig(
            data_dir=self.tmp,
            photo_db_path=str(Path(self.tmp) / "places.db"),
            analytics_db_path=str(Path(self.tmp) / "ocr_analysis.db"),
            analytics_images_dir=str(Path(self.tmp) / "ocr_images"),
            recognition_workers=1,
            search_timeout_s=5.0,
            geocode_timeout_s=5.0,
        )
        self.store = PhotoStore(self.config.photo_db_path)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def make_pipeline(self, recognizer=None, search=None, geocoder=None, store=None,
                      ocr_logger=None):
        pipeline = CapturePipeline(
            self.config,
            recognizer or FakeRecognizer([make_detection("Luigi's", 0.9)]),
            search or FakeSearch([luigis()]),
            geocoder or FakeGeocoder(BROADWAY),
            store or self.store,
            ocr_logger,
        )
        self.addCleanup(pipeline.shutdown)
        return pipeline

    def test_recognize_ranks_detections(self):
        recognizer = FakeRecognizer([make_detection("Luigi's", 0.9),
                                     make_detection("OPEN", 0.7, x=0.05, y=0.05, width=0.05, height=0.05)])
        result = self.make_pipeline(recognizer=recognizer).recognize(blank_image())

        self.assertEqual(result.best_text, "Luigi's")
        # Standard, three enhanced and fast passes all report both texts
        self.assertEqual(len(result.detections), 10)
        self.assertEqual(len(recognizer.calls), 5)
        self.assertTrue(result.brightness_grid)

    def test_capture_verified_store_is_saved(self):
        pipeline = self.make_pipeline()
        outcome = pipeline.submit_capture(blank_image(), IMAGE_BYTES, UNION_SQUARE).result(timeout=10)

        self.assertTrue(outcome.committed)
        self.assertEqual(outcome.resolution.source, ResolutionSource.STORE_MATCH)
        photo = self.store.get_photo(outcome.photo_id)
        self.assertEqual(photo.extracted_text, "Luigi's")
        self.assertEqual(photo.category, FOOD)
        self.assertEqual(photo.latitude, luigis().coordinate.latitude)
        self.assertEqual(photo.address, "12 E 16th St")
        self.assertEqual(photo.image_bytes, IMAGE_BYTES)

    def test_unavailable_recognizer_still_geocodes(self):
        recognizer = FakeRecognizer(error=RecognitionUnavailable("no engine"))
        search = FakeSearch([luigis()])
        pipeline = self.make_pipeline(recognizer=recognizer, search=search)

        outcome = pipeline.process_capture(blank_image(), IMAGE_BYTES, UNION_SQUARE)

        self.assertTrue(outcome.committed)
        self.assertIsNone(outcome.recognition.best_text)
        self.assertEqual(search.queries, [])
        photo = self.store.get_photo(outcome.photo_id)
        self.assertIsNone(photo.extracted_text)
        self.assertEqual(photo.category, "Other")
        self.assertEqual(photo.address, "860 Broadway")

    def test_retake_discards_first_capture(self):
        search = BlockingSearch([luigis()])
        pipeline = self.make_pipeline(search=search)

        first = pipeline.submit_capture(blank_image(), b"first", UNION_SQUARE)
        self.assertTrue(search.entered.wait(5.0))

        second = pipeline.submit_capture(blank_image(), b"second", UNION_SQUARE)
        second_outcome = second.result(timeout=10)
        search.release.set()
        first_outcome = first.result(timeout=10)

        self.assertTrue(second_outcome.committed)
        self.assertFalse(first_outcome.committed)
        self.assertIsNone(first_outcome.photo_id)
        photos = self.store.get_all_photos()
        self.assertEqual(len(photos), 1)
        self.assertEqual(photos[0].image_bytes, b"second")

    def test_retake_is_not_queued_behind_stuck_captures(self):
        search = BlockingSearch([luigis()], block_calls=2)
        pipeline = self.make_pipeline(search=search)
        self.addCleanup(search.release.set)

        first = pipeline.submit_capture(blank_image(), b"first", UNION_SQUARE)
        self.assertTrue(search.blocked.acquire(timeout=5.0))
        second = pipeline.submit_capture(blank_image(), b"second", UNION_SQUARE)
        self.assertTrue(search.blocked.acquire(timeout=5.0))

        # Both earlier captures are still waiting on the search
        third_outcome = pipeline.submit_capture(blank_image(), b"third", UNION_SQUARE).result(timeout=3)
        self.assertFalse(first.done())
        self.assertFalse(second.done())

        search.release.set()
        self.assertFalse(first.result(timeout=10).committed)
        self.assertFalse(second.result(timeout=10).committed)

        self.assertTrue(third_outcome.committed)
        self.assertEqual(third_outcome.resolution.source, ResolutionSource.STORE_MATCH)
        photos = self.store.get_all_photos()
        self.assertEqual([p.image_bytes for p in photos], [b"third"])

    def test_cancel_discards_in_flight_capture(self):
        search = BlockingSearch([luigis()])
        pipeline = self.make_pipeline(search=search)

        future = pipeline.submit_capture(blank_image(), IMAGE_BYTES, UNION_SQUARE)
        self.assertTrue(search.entered.wait(5.0))
        pipeline.cancel()
        search.release.set()

        self.assertFalse(future.result(timeout=10).committed)
        self.assertEqual(self.store.get_statistics()['total'], 0)

    def test_persistence_failure_carries_resolution(self):
        store = mock.Mock(spec=PhotoStore)
        store.insert_photo.side_effect = PersistenceFailed("disk full")
        pipeline = self.make_pipeline(store=store)

        with self.assertRaises(PersistenceFailed) as ctx:
            pipeline.process_capture(blank_image(), IMAGE_BYTES, UNION_SQUARE)

        self.assertIsNotNone(ctx.exception.resolution)
        self.assertEqual(ctx.exception.resolution.verified_name, "Luigi's")

    def test_analytics_failure_does_not_fail_capture(self):
        ocr_logger = mock.Mock(spec=OCRLogger)
        ocr_logger.record.side_effect = RuntimeError("analytics db locked")
        pipeline = self.make_pipeline(ocr_logger=ocr_logger)

        outcome = pipeline.process_capture(blank_image(), IMAGE_BYTES, UNION_SQUARE)

        self.assertTrue(outcome.committed)
        ocr_logger.record.assert_called_once()

    def test_correct_label_updates_photo_and_analytics(self):
        ocr_logger = OCRLogger(self.config.analytics_db_path, self.config.analytics_images_dir)
        pipeline = self.make_pipeline(search=FakeSearch([]), ocr_logger=ocr_logger)
        outcome = pipeline.process_capture(blank_image(), IMAGE_BYTES, UNION_SQUARE)

        self.assertTrue(pipeline.correct_label(outcome.photo_id, "Luigi's Trattoria"))

        self.assertEqual(self.store.get_photo(outcome.photo_id).extracted_text, "Luigi's Trattoria")
        exported = json.loads(ocr_logger.export_all())
        self.assertEqual(exported[0]['corrected_text'], "Luigi's Trattoria")
        self.assertEqual(exported[0]['was_correct'], 0)

    def test_correct_label_unknown_photo(self):
        self.assertFalse(self.make_pipeline().correct_label(999, "Anything"))

    def test_encoded_bytes_are_decoded(self):
        import cv2
        ok, encoded = cv2.imencode('.png', blank_image())
        self.assertTrue(ok)
        data = encoded.tobytes()

        outcome = self.make_pipeline().process_capture(data, None, UNION_SQUARE)

        self.assertTrue(outcome.committed)
        self.assertEqual(self.store.get_photo(outcome.photo_id).image_bytes, data)


if __name__ == '__main__':
    unittest.main()
