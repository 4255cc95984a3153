"""
Tests for overlay rendering functionality.
"""

import unittest
import sys
import os

import numpy as np

# Add src directory to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'src'))

from overlay import OverlayConfiguration, OverlayRenderer  # type: ignore


class TestOverlay(unittest.TestCase):
    """Test cases for overlay rendering."""

    def setUp(self):
        self.renderer = OverlayRenderer()
        self.frame = np.zeros((200, 300, 3), dtype=np.uint8)
        self.quad = np.array([[50, 40], [150, 40], [150, 140], [50, 140]], dtype=np.float32)

    def test_render_marker(self):
        grid = np.array([[0, 255], [255, 0]], dtype=np.uint8)
        image = OverlayRenderer.render_marker(grid, cell_size=10)

        self.assertEqual(image.shape, (20, 20))
        self.assertEqual(image.dtype, np.uint8)
        self.assertFalse(image[:10, :10].any())
        self.assertTrue((image[:10, 10:] == 255).all())

    def test_draw_candidates_leaves_input_untouched(self):
        canvas = self.renderer.draw_candidates(self.frame, [self.quad.astype(np.int32)])

        self.assertFalse(self.frame.any())
        self.assertTrue(canvas.any())
        self.assertEqual(canvas.shape, self.frame.shape)

    def test_draw_candidates_without_quads(self):
        canvas = self.renderer.draw_candidates(self.frame, [])
        self.assertFalse(canvas.any())

    def test_draw_grid(self):
        patch = np.zeros((60, 60), dtype=np.uint8)
        grid = np.zeros((6, 6), dtype=np.uint8)
        renderer = OverlayRenderer(OverlayConfiguration(draw_grid_values=False))
        canvas = renderer.draw_grid(patch, grid)

        self.assertEqual(canvas.shape, (60, 60, 3))
        # Grid line at each cell boundary
        self.assertEqual(tuple(canvas[10, 5]), OverlayConfiguration().grid_line_color)

    def test_draw_grid_values_toggle(self):
        patch = np.zeros((120, 120), dtype=np.uint8)
        grid = np.full((2, 2), 255, dtype=np.uint8)

        with_values = self.renderer.draw_grid(patch, grid)
        plain = OverlayRenderer(OverlayConfiguration(draw_grid_values=False)).draw_grid(patch, grid)

        value_color = np.array(OverlayConfiguration().grid_value_color)
        self.assertTrue((with_values == value_color).all(axis=2).any())
        self.assertFalse((plain == value_color).all(axis=2).any())

    def test_draw_detection(self):
        canvas = self.renderer.draw_detection(self.frame, self.quad, 3, 90)

        self.assertFalse(self.frame.any())
        self.assertEqual(tuple(canvas[90, 50]), OverlayConfiguration().marker_color)

    def test_blank(self):
        self.assertEqual(OverlayRenderer.blank(30).shape, (30, 30))
        self.assertEqual(OverlayRenderer.blank(30, channels=3).shape, (30, 30, 3))


if __name__ == '__main__':
    unittest.main()
