"""
Tests for clogwench.pixel_buffer - ARGB storage, clipping, export.
"""

import numpy as np
import pytest

from clogwench.errors import InvalidRect
from clogwench.graphics import MAGENTA, PLACEHOLDER, RED, WHITE, Color, Rect
from clogwench.pixel_buffer import PixelBuffer


class TestConstruction:
    def test_size_and_layout(self):
        buf = PixelBuffer(3, 2)
        assert buf.width == 3
        assert buf.height == 2
        assert buf.array.shape == (2, 3, 4)
        assert buf.array.dtype == np.uint8
        assert len(buf.data) == 3 * 2 * 4

    def test_initial_fill_is_placeholder(self):
        buf = PixelBuffer(2, 2)
        assert buf.data == [255, 255, 0, 255] * 4
        assert buf.get_pixel(1, 1) == PLACEHOLDER

    def test_custom_fill(self):
        buf = PixelBuffer(1, 1, fill=WHITE)
        assert buf.data == [255, 255, 255, 255]

    def test_zero_size(self):
        buf = PixelBuffer(0, 0)
        assert buf.data == []
        buf.draw_rect(Rect(0, 0, 10, 10), RED)
        assert buf.data == []

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            PixelBuffer(-1, 4)

    def test_from_argb(self):
        data = [255, 1, 2, 3, 128, 4, 5, 6]
        buf = PixelBuffer.from_argb(2, 1, data)
        assert buf.data == data
        assert buf.get_pixel(1, 0) == Color(4, 5, 6, 128)

    def test_from_argb_wrong_length(self):
        with pytest.raises(ValueError):
            PixelBuffer.from_argb(2, 2, [0] * 15)


class TestPixels:
    def test_set_pixel_stores_argb_order(self):
        buf = PixelBuffer(4, 4)
        buf.set_pixel(1, 2, Color(10, 20, 30, 40))
        offset = (2 * 4 + 1) * 4
        assert buf.data[offset:offset + 4] == [40, 10, 20, 30]

    @pytest.mark.parametrize("x,y", [(-1, 0), (0, -1), (4, 0), (0, 4), (100, 100)])
    def test_set_pixel_out_of_bounds_is_ignored(self, x, y):
        buf = PixelBuffer(4, 4)
        before = buf.copy()
        buf.set_pixel(x, y, RED)
        assert buf == before

    def test_get_pixel_out_of_bounds_raises(self):
        buf = PixelBuffer(2, 2)
        with pytest.raises(IndexError):
            buf.get_pixel(2, 0)

    def test_hex_color_accepted(self):
        buf = PixelBuffer(1, 1)
        buf.set_pixel(0, 0, "#ff0000")
        assert buf.get_pixel(0, 0) == RED


class TestDrawRect:
    def test_fills_exactly_the_rect(self):
        buf = PixelBuffer(10, 10, fill=WHITE)
        buf.draw_rect(Rect(2, 3, 4, 5), RED)
        painted = {
            (x, y)
            for y in range(10)
            for x in range(10)
            if buf.get_pixel(x, y) == RED
        }
        assert painted == {(x, y) for x in range(2, 6) for y in range(3, 8)}

    def test_clips_to_buffer(self):
        buf = PixelBuffer(4, 4, fill=WHITE)
        buf.draw_rect(Rect(-2, -2, 4, 100), RED)
        assert buf.get_pixel(0, 0) == RED
        assert buf.get_pixel(1, 3) == RED
        assert buf.get_pixel(2, 0) == WHITE

    def test_fully_outside_is_noop(self):
        buf = PixelBuffer(4, 4, fill=WHITE)
        buf.draw_rect(Rect(10, 10, 5, 5), RED)
        assert buf == PixelBuffer(4, 4, fill=WHITE)

    def test_zero_or_negative_size_is_noop(self):
        buf = PixelBuffer(4, 4, fill=WHITE)
        buf.draw_rect(Rect(1, 1, 0, 3), RED)
        buf.draw_rect(Rect(1, 1, -2, 3), RED)
        assert buf == PixelBuffer(4, 4, fill=WHITE)

    def test_fractional_rect_covers_whole_pixels_inside(self):
        buf = PixelBuffer(4, 1, fill=WHITE)
        # pixels 1 and 2 lie inside [0.5, 2.5)
        buf.draw_rect(Rect(0.5, 0, 2.0, 1), RED)
        assert [buf.get_pixel(x, 0) == RED for x in range(4)] == [False, True, True, False]

    def test_nan_rect_raises(self):
        buf = PixelBuffer(4, 4)
        with pytest.raises(InvalidRect):
            buf.draw_rect(Rect(float("nan"), 0, 1, 1), RED)

    def test_accepts_tuple_and_dict(self):
        buf = PixelBuffer(3, 3, fill=WHITE)
        buf.draw_rect((0, 0, 1, 1), RED)
        buf.draw_rect({"x": 2, "y": 2, "w": 1, "h": 1}, RED)
        assert buf.get_pixel(0, 0) == RED
        assert buf.get_pixel(2, 2) == RED
        assert buf.get_pixel(1, 1) == WHITE


class TestDrawImage:
    def test_paints_magenta(self):
        buf = PixelBuffer(4, 4, fill=WHITE)
        image = PixelBuffer(2, 2, fill=RED)
        buf.draw_image(Rect(1, 1, 2, 2), image)
        assert buf.get_pixel(1, 1) == MAGENTA
        assert buf.get_pixel(2, 2) == MAGENTA
        assert buf.get_pixel(0, 0) == WHITE
        assert buf.get_pixel(3, 3) == WHITE


class TestFillAndExport:
    def test_fill_and_clear(self):
        buf = PixelBuffer(2, 2)
        buf.fill(RED)
        assert all(buf.get_pixel(x, y) == RED for x in range(2) for y in range(2))
        buf.clear()
        assert buf == PixelBuffer(2, 2)

    def test_copy_is_independent(self):
        buf = PixelBuffer(2, 2, fill=WHITE)
        clone = buf.copy()
        clone.set_pixel(0, 0, RED)
        assert buf.get_pixel(0, 0) == WHITE
        assert buf != clone

    def test_tobytes_matches_data(self):
        buf = PixelBuffer(2, 1, fill=Color(1, 2, 3, 4))
        assert buf.tobytes() == bytes(buf.data)

    def test_data_is_plain_ints(self):
        buf = PixelBuffer(1, 1)
        assert all(type(v) is int for v in buf.data)

    def test_not_hashable(self):
        with pytest.raises(TypeError):
            hash(PixelBuffer(1, 1))

    def test_repr(self):
        assert repr(PixelBuffer(3, 2)) == "PixelBuffer(3x2)"


class TestPillow:
    def test_round_trip(self):
        pytest.importorskip("PIL")
        buf = PixelBuffer(2, 2, fill=WHITE)
        buf.set_pixel(1, 0, Color(10, 20, 30, 200))
        image = buf.to_pil()
        assert image.mode == "RGBA"
        assert image.size == (2, 2)
        assert image.getpixel((1, 0)) == (10, 20, 30, 200)
        assert PixelBuffer.from_pil(image) == buf
