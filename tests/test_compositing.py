import logging
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hologram_pyramid.compositing import (  # noqa: E402
    FrameCompositor,
    cover_fit,
    downscale_to_fit,
    ensure_bgr,
)
from hologram_pyramid.geometry import compute_layout, layout_for_raster  # noqa: E402


def make_compositor() -> FrameCompositor:
    return FrameCompositor(logger=logging.getLogger("compositing-tests"))


def gradient_raster(width: int, height: int) -> np.ndarray:
    raster = np.zeros((height, width, 3), dtype=np.uint8)
    raster[..., 0] = np.linspace(0, 255, width, dtype=np.uint8)[np.newaxis, :]
    raster[..., 1] = np.linspace(0, 255, height, dtype=np.uint8)[:, np.newaxis]
    raster[..., 2] = 200
    return raster


def solid_raster(width: int, height: int, color) -> np.ndarray:
    raster = np.zeros((height, width, 3), dtype=np.uint8)
    raster[...] = color
    return raster


def test_composite_canvas_size_and_black_corners():
    source = gradient_raster(1000, 800)
    layout = layout_for_raster(source)

    output = make_compositor().composite(source, layout)

    assert output.shape == (1500, 1500, 3)
    assert output.dtype == np.uint8
    for y, x in [(0, 0), (0, 1499), (1499, 0), (1499, 1499)]:
        assert output[y, x].tolist() == [0, 0, 0]
    # Centre of the cross lies between the narrow edges.
    assert output[750, 750].tolist() == [0, 0, 0]
    # Each panel centre shows the source.
    for y, x in [(500, 750), (750, 1000), (1000, 750), (750, 500)]:
        assert output[y, x].sum() > 0


def test_composite_is_deterministic():
    source = gradient_raster(120, 90)
    layout = layout_for_raster(source)
    compositor = make_compositor()

    first = compositor.composite(source, layout)
    second = compositor.composite(source, layout)

    assert np.array_equal(first, second)


def test_render_into_overwrites_previous_frame():
    layout = compute_layout(64)
    compositor = make_compositor()
    buffer = np.full((layout.canvas_size, layout.canvas_size, 3), 77, dtype=np.uint8)

    result = compositor.render_into(buffer, solid_raster(64, 64, (10, 20, 30)), layout)

    assert result is buffer
    assert buffer[0, 0].tolist() == [0, 0, 0]
    assert np.array_equal(buffer, compositor.composite(solid_raster(64, 64, (10, 20, 30)), layout))


def test_render_into_rejects_wrong_buffer_size():
    layout = compute_layout(64)
    with pytest.raises(ValueError):
        make_compositor().render_into(np.zeros((10, 10, 3), dtype=np.uint8), solid_raster(64, 64, 5), layout)


def test_blend_endpoints_match_plain_composite():
    image_a = gradient_raster(80, 60)
    image_b = solid_raster(80, 60, (0, 0, 255))
    layout = layout_for_raster(image_a)
    compositor = make_compositor()

    at_zero = compositor.composite_blend(image_a, image_b, 0.0, layout)
    at_one = compositor.composite_blend(image_a, image_b, 1.0, layout)

    assert np.array_equal(at_zero, compositor.composite(image_a, layout))
    assert np.array_equal(at_one, compositor.composite(image_b, layout))


def test_blend_draws_b_over_faded_a():
    image_a = solid_raster(40, 40, (200, 0, 0))
    image_b = solid_raster(40, 40, (0, 0, 200))

    blended = make_compositor().blend_sources(image_a, image_b, 0.5)

    assert blended.shape == (40, 40, 3)
    # A at 0.5 over black, then B at 0.5 over that.
    np.testing.assert_allclose(blended[20, 20], [50, 0, 100], atol=1)


def test_blend_uses_largest_dimensions_and_caps_them():
    image_a = solid_raster(300, 100, (1, 2, 3))
    image_b = solid_raster(100, 200, (4, 5, 6))
    compositor = make_compositor()

    assert compositor.blend_sources(image_a, image_b, 0.3).shape == (200, 300, 3)
    assert compositor.blend_sources(image_a, image_b, 0.3, max_dimension=150).shape == (100, 150, 3)


def test_cover_fit_fills_and_crops_center():
    source = np.zeros((100, 200, 3), dtype=np.uint8)
    source[:, 50:150] = 255

    fitted = cover_fit(source, 100, 100)

    assert fitted.shape == (100, 100, 3)
    assert fitted[50, 50].tolist() == [255, 255, 255]
    assert cover_fit(source, 200, 100) is source


def test_downscale_to_fit_keeps_aspect_ratio():
    raster = np.zeros((1000, 2000, 3), dtype=np.uint8)

    assert downscale_to_fit(raster, 1024).shape == (512, 1024, 3)
    assert downscale_to_fit(raster, 4000) is raster


def test_ensure_bgr_converts_gray_and_bgra():
    gray = np.full((4, 4), 9, dtype=np.uint8)
    bgra = np.zeros((4, 4, 4), dtype=np.uint8)

    assert ensure_bgr(gray).shape == (4, 4, 3)
    assert ensure_bgr(bgra).shape == (4, 4, 3)


def test_extract_faces_returns_four_rotated_squares():
    source = np.zeros((60, 80, 3), dtype=np.uint8)
    source[:10, :] = (0, 255, 0)

    faces = make_compositor().extract_faces(source)

    assert len(faces) == 4
    for face in faces:
        assert face.shape == (80, 80, 3)
    top, right, bottom, left = faces
    # Green band sits at the top of the unrotated face and at the bottom once flipped.
    assert top[2, 40, 1] == 255
    assert bottom[77, 40, 1] == 255
    assert right[40, 77, 1] == 255
    assert left[40, 2, 1] == 255
