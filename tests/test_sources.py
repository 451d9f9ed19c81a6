import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hologram_pyramid.errors import DecodeError  # noqa: E402
from hologram_pyramid.sources import (  # noqa: E402
    FrameSequenceSource,
    StillSource,
    TemporaryVideoFile,
    VideoCaptureSource,
    encode_png,
    load_raster,
)


def test_load_raster_from_bytes_path_and_array(tmp_path):
    raster = np.zeros((5, 7, 3), dtype=np.uint8)
    raster[2, 3] = (1, 2, 3)
    png = encode_png(raster)
    path = tmp_path / "pixel.png"
    path.write_bytes(png)

    assert np.array_equal(load_raster(png), raster)
    assert np.array_equal(load_raster(path), raster)
    assert np.array_equal(load_raster(str(path)), raster)
    assert load_raster(raster) is raster


def test_load_raster_drops_alpha(tmp_path):
    bgra = np.zeros((4, 4, 4), dtype=np.uint8)
    bgra[..., 3] = 255
    success, buffer = cv2.imencode(".png", bgra)
    assert success

    assert load_raster(buffer.tobytes()).shape == (4, 4, 3)


def test_load_raster_scales_16_bit_png_to_8_bit(tmp_path):
    deep = np.full((4, 4, 3), 100 * 257, dtype=np.uint16)
    path = tmp_path / "deep.png"
    assert cv2.imwrite(str(path), deep)

    raster = load_raster(path)

    assert raster.dtype == np.uint8
    assert raster.shape == (4, 4, 3)
    assert np.all(raster == 100)


def test_load_raster_scales_16_bit_bgra_png_to_8_bit(tmp_path):
    deep = np.full((4, 4, 4), 100 * 257, dtype=np.uint16)
    deep[..., 3] = 65535
    success, buffer = cv2.imencode(".png", deep)
    assert success

    raster = load_raster(buffer.tobytes())

    assert raster.dtype == np.uint8
    assert raster.shape == (4, 4, 3)
    assert np.all(raster == 100)


@pytest.mark.parametrize("bad", [b"", b"definitely not an image", bytearray(b"\x89PNG broken")])
def test_undecodable_bytes_raise_decode_error(bad):
    with pytest.raises(DecodeError):
        load_raster(bad)


def test_missing_file_raises_decode_error(tmp_path):
    with pytest.raises(DecodeError):
        load_raster(tmp_path / "missing.png")


def test_frame_sequence_source_plays_and_rewinds():
    frames = [np.full((2, 2, 3), value, dtype=np.uint8) for value in (1, 2)]
    source = FrameSequenceSource(frames, fps=12)

    assert source.fps == 12
    assert source.read() is frames[0]
    assert source.read() is frames[1]
    assert source.read() is None
    source.pause()
    assert source.paused
    source.rewind()
    assert not source.paused
    assert source.read() is frames[0]


def test_still_source_never_ends():
    source = StillSource(np.zeros((3, 3), dtype=np.uint8))

    assert source.read().shape == (3, 3, 3)
    assert source.read() is source.read()
    assert source.fps is None


def test_temporary_video_file_is_removed_on_exit():
    with TemporaryVideoFile(b"\x00\x01", suffix=".webm") as path:
        assert path.suffix == ".webm"
        assert path.read_bytes() == b"\x00\x01"
    assert not path.exists()

    with pytest.raises(DecodeError):
        with TemporaryVideoFile(b""):
            pass


def test_unopenable_video_file_raises_decode_error(tmp_path):
    with pytest.raises(DecodeError):
        VideoCaptureSource(tmp_path / "missing.mp4")
