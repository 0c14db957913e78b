"""
Unit tests for pixel buffer access and the canvas data models.
"""

import base64
import unittest

from conftest import make_png_base64, make_png_bytes

from DB_Libs.CanvasLib import (
    ImageSurface,
    PixelBuffer,
    colors_match,
    decode_png_base64,
    encode_png_base64,
    hex_to_rgba,
    image_bytes_to_base64_png,
    is_blank,
    read_pixels,
    resize_encoded_image,
    write_pixels,
)
from DB_Libs.pillow_compat import Image


class TestPixelBuffer(unittest.TestCase):
    """Tests for the PixelBuffer data model."""

    def test_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            PixelBuffer(2, 2, bytearray(15))

    def test_filled_and_get_pixel(self):
        buffer = PixelBuffer.filled(3, 2, (1, 2, 3, 4))
        self.assertEqual(buffer.get_pixel(2, 1), (1, 2, 3, 4))
        self.assertEqual(len(buffer.data), 24)

    def test_set_pixel_out_of_bounds_raises(self):
        buffer = PixelBuffer.filled(2, 2, (0, 0, 0, 0))
        with self.assertRaises(IndexError):
            buffer.set_pixel(2, 0, (1, 1, 1, 1))

    def test_copy_is_independent(self):
        buffer = PixelBuffer.filled(2, 2, (0, 0, 0, 0))
        clone = buffer.copy()
        clone.set_pixel(0, 0, (9, 9, 9, 9))
        self.assertEqual(buffer.get_pixel(0, 0), (0, 0, 0, 0))

    def test_bytes_are_coerced_to_bytearray(self):
        buffer = PixelBuffer(1, 1, b"\x01\x02\x03\x04")
        self.assertIsInstance(buffer.data, bytearray)


class TestColorHelpers(unittest.TestCase):
    """Tests for hex parsing and exact matching."""

    def test_hex_to_rgba_six_digits(self):
        self.assertEqual(hex_to_rgba("#FF7F00"), (255, 127, 0, 255))

    def test_hex_to_rgba_eight_digits(self):
        self.assertEqual(hex_to_rgba("#0000FF80"), (0, 0, 255, 128))

    def test_hex_to_rgba_invalid(self):
        for value in ("#FFF", "red", "#GGGGGG"):
            with self.assertRaises(ValueError):
                hex_to_rgba(value)

    def test_colors_match_is_exact(self):
        self.assertTrue(colors_match((1, 2, 3, 4), (1, 2, 3, 4)))
        self.assertFalse(colors_match((1, 2, 3, 4), (1, 2, 3, 5)))


class TestImageSurface(unittest.TestCase):
    """Tests for surface read/write round trips."""

    def test_new_surface_is_blank(self):
        self.assertTrue(is_blank(ImageSurface(10, 10)))

    def test_write_then_read(self):
        surface = ImageSurface(4, 3)
        buffer = PixelBuffer.filled(4, 3, (10, 20, 30, 255))

        write_pixels(surface, buffer)

        self.assertEqual(bytes(read_pixels(surface).data), bytes(buffer.data))
        self.assertFalse(is_blank(surface))

    def test_write_size_mismatch_raises(self):
        surface = ImageSurface(4, 4)
        with self.assertRaises(ValueError):
            write_pixels(surface, PixelBuffer.filled(3, 4, (0, 0, 0, 0)))

    def test_read_returns_independent_buffer(self):
        surface = ImageSurface(2, 2)
        buffer = read_pixels(surface)
        buffer.set_pixel(0, 0, (255, 255, 255, 255))
        self.assertTrue(is_blank(surface))

    def test_clear(self):
        surface = ImageSurface(3, 3)
        write_pixels(surface, PixelBuffer.filled(3, 3, (1, 1, 1, 1)))
        surface.clear()
        self.assertTrue(is_blank(surface))

    def test_draw_encoded_stretches_to_surface(self):
        surface = ImageSurface(16, 8)
        surface.draw_encoded(make_png_base64(4, 4, (0, 255, 0, 255)))

        buffer = read_pixels(surface)
        self.assertEqual(buffer.get_pixel(0, 0), (0, 255, 0, 255))
        self.assertEqual(buffer.get_pixel(15, 7), (0, 255, 0, 255))

    def test_snapshot_on_white_flattens_and_shrinks(self):
        surface = ImageSurface(400, 300)

        snapshot = decode_png_base64(surface.snapshot_on_white())

        self.assertEqual(snapshot.size, (200, 150))
        self.assertEqual(snapshot.getpixel((10, 10)), (255, 255, 255, 255))


class TestEncoding(unittest.TestCase):
    """Tests for base64 PNG helpers."""

    def test_encode_decode(self):
        image = Image.new("RGBA", (3, 2), (5, 6, 7, 255))
        decoded = decode_png_base64(encode_png_base64(image))
        self.assertEqual(decoded.size, (3, 2))
        self.assertEqual(decoded.getpixel((1, 1)), (5, 6, 7, 255))

    def test_decode_accepts_data_url(self):
        decoded = decode_png_base64("data:image/png;base64," + make_png_base64(2, 2))
        self.assertEqual(decoded.size, (2, 2))

    def test_decode_invalid_raises_value_error(self):
        with self.assertRaises(ValueError):
            decode_png_base64("not base64!")
        with self.assertRaises(ValueError):
            decode_png_base64(base64.b64encode(b"plain text").decode("ascii"))

    def test_resize_keeps_aspect(self):
        resized = decode_png_base64(resize_encoded_image(make_png_base64(400, 100), 200))
        self.assertEqual(resized.size, (200, 50))

    def test_resize_small_image_unchanged_size(self):
        resized = decode_png_base64(resize_encoded_image(make_png_base64(20, 10), 200))
        self.assertEqual(resized.size, (20, 10))

    def test_image_bytes_to_base64_png(self):
        encoded = image_bytes_to_base64_png(make_png_bytes(5, 4))
        self.assertEqual(decode_png_base64(encoded).size, (5, 4))

    def test_image_bytes_invalid_raises(self):
        with self.assertRaises(ValueError):
            image_bytes_to_base64_png(b"nope")


if __name__ == "__main__":
    unittest.main()
