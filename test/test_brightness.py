import unittest

import cv2
import numpy as np

from placelens import brightness
from placelens.models import Rect


class TestAnalyze(unittest.TestCase):

    def test_grid_dimensions_follow_stride(self):
        image = np.zeros((100, 250, 3), dtype=np.uint8)
        grid = brightness.analyze(image)
        self.assertEqual(len(grid), 5)
        self.assertEqual(len(grid[0]), 13)

    def test_luminance_values(self):
        white = np.full((40, 40, 3), 255, dtype=np.uint8)
        self.assertAlmostEqual(brightness.analyze(white)[0][0], 1.0, places=5)

        red = np.zeros((40, 40, 3), dtype=np.uint8)
        red[..., 2] = 255  # BGR
        self.assertAlmostEqual(brightness.analyze(red)[0][0], 0.299, places=5)

    def test_top_row_of_grid_is_top_of_image(self):
        image = np.zeros((100, 100, 3), dtype=np.uint8)
        image[:50] = 255
        grid = brightness.analyze(image)
        self.assertAlmostEqual(grid[0][0], 1.0, places=5)
        self.assertAlmostEqual(grid[-1][0], 0.0, places=5)

    def test_encoded_bytes(self):
        image = np.full((40, 60, 3), 255, dtype=np.uint8)
        ok, encoded = cv2.imencode('.png', image)
        grid = brightness.analyze(encoded.tobytes())
        self.assertEqual((len(grid), len(grid[0])), (2, 3))

    def test_undecodable_bytes(self):
        with self.assertRaises(ValueError):
            brightness.analyze(b"not an image")

    def test_empty_image(self):
        self.assertEqual(brightness.analyze(np.zeros((0, 0, 3), dtype=np.uint8)), [])


class TestSampleAt(unittest.TestCase):

    def test_vertical_axis_is_flipped(self):
        # Bright top rows; a box in the upper part of the frame (high y) is bright
        grid = [[1.0] * 10 for _ in range(5)] + [[0.0] * 10 for _ in range(5)]
        upper = Rect(0.4, 0.8, 0.2, 0.1)
        lower = Rect(0.4, 0.1, 0.2, 0.1)
        self.assertAlmostEqual(brightness.sample_at(upper, grid), 1.0)
        self.assertAlmostEqual(brightness.sample_at(lower, grid), 0.0)

    def test_neighborhood_is_clamped_at_edges(self):
        grid = [[float(x) for x in range(4)] for _ in range(4)]
        corner = Rect(0.0, 0.9, 0.02, 0.02)
        # Columns 0,0,1 after clamping
        self.assertAlmostEqual(brightness.sample_at(corner, grid), 1.0 / 3.0)

    def test_empty_grid_is_neutral(self):
        self.assertEqual(brightness.sample_at(Rect(0.5, 0.5, 0.1, 0.1), []), 0.5)

    def test_average(self):
        self.assertAlmostEqual(brightness.average([[0.2, 0.4], [0.6, 0.8]]), 0.5)
        self.assertEqual(brightness.average([]), 0.0)


if __name__ == '__main__':
    unittest.main()
