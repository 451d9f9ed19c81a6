import logging
import sys
import threading
import time
from pathlib import Path
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import hologram_pyramid.preview as preview_module  # noqa: E402
from hologram_pyramid.geometry import compute_layout  # noqa: E402
from hologram_pyramid.preview import (  # noqa: E402
    NO_KEY,
    LivePreviewLoop,
    MemorySurface,
    PreviewOptions,
    WindowSurface,
    draw_cross_guides,
    pump_until_done,
)
from hologram_pyramid.sources import FrameSequenceSource, StillSource  # noqa: E402


class ExplodingSource:
    fps = None

    def __init__(self):
        self.paused = False

    def read(self):
        raise RuntimeError("device unplugged")

    def rewind(self):
        pass

    def pause(self):
        self.paused = True

    def release(self):
        pass


def build_loop() -> LivePreviewLoop:
    return LivePreviewLoop(logger=logging.getLogger("preview-tests"))


def solid(color, size: int = 32) -> np.ndarray:
    raster = np.zeros((size, size, 3), dtype=np.uint8)
    raster[...] = color
    return raster


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_non_looping_source_ends_by_itself():
    surface = MemorySurface()
    composited = []
    after_draw = []
    source = FrameSequenceSource([solid((255, 0, 0)), solid((0, 255, 0)), solid((0, 0, 255))])
    options = PreviewOptions(
        loop=False,
        fps=100,
        draw_guides=False,
        on_frame=lambda frame: composited.append(frame.copy()),
        on_after_draw=lambda: after_draw.append(True),
    )

    handle = build_loop().start(source, surface, options)

    assert handle.wait(timeout=5)
    assert not handle.running
    assert handle.error is None
    assert handle.frames_drawn == 3
    assert surface.frames_presented == 3
    assert len(composited) == 3
    assert len(after_draw) == 3
    canvas = compute_layout(32).canvas_size
    assert surface.last_frame.shape == (canvas, canvas, 3)
    assert np.array_equal(surface.last_frame, composited[-1])
    assert source.paused


def test_stop_is_idempotent_and_pauses_the_source():
    surface = MemorySurface()
    source = StillSource(solid((10, 200, 10)))

    handle = build_loop().start(source, surface, PreviewOptions(fps=100))
    assert wait_for(lambda: surface.frames_presented >= 2)

    handle.stop()
    handle.stop()

    assert not handle.running
    assert handle.wait(timeout=0)
    assert source.paused
    time.sleep(0.05)
    presented = surface.frames_presented
    time.sleep(0.1)
    assert surface.frames_presented == presented


def test_looping_source_rewinds():
    surface = MemorySurface()
    source = FrameSequenceSource([solid((1, 1, 1)), solid((2, 2, 2))])

    handle = build_loop().start(source, surface, PreviewOptions(fps=100, draw_guides=False))
    try:
        assert wait_for(lambda: handle.frames_drawn >= 5)
    finally:
        handle.stop()

    assert handle.error is None


def test_prerendered_frames_are_presented_as_is():
    surface = MemorySurface()
    frame = solid((5, 6, 7), size=40)
    source = FrameSequenceSource([frame])
    options = PreviewOptions(loop=False, fps=100, draw_guides=False, prerendered=True)

    handle = build_loop().start(source, surface, options)

    assert handle.wait(timeout=5)
    assert np.array_equal(surface.last_frame, frame)


def test_preview_scales_to_max_width():
    surface = MemorySurface()
    source = FrameSequenceSource([solid((50, 50, 50), size=200)])
    options = PreviewOptions(loop=False, fps=100, max_width=100)

    handle = build_loop().start(source, surface, options)

    assert handle.wait(timeout=5)
    assert surface.last_frame.shape == (100, 100, 3)


def test_tick_failure_stops_the_loop():
    source = ExplodingSource()

    handle = build_loop().start(source, MemorySurface(), PreviewOptions(fps=100))

    assert handle.wait(timeout=5)
    assert isinstance(handle.error, RuntimeError)
    assert source.paused


def test_cross_guides_only_touch_the_center_lines():
    raster = solid((0, 0, 0), size=21)

    guided = draw_cross_guides(raster)

    assert guided.shape == raster.shape
    assert guided[0, 10].sum() > 0
    assert guided[10, 0].sum() > 0
    assert guided[3, 3].sum() == 0
    assert raster.sum() == 0


def test_source_frame_rate_paces_playback_below_refresh_rate():
    surface = MemorySurface()
    source = FrameSequenceSource([solid((index, index, index)) for index in range(10)], fps=10)
    options = PreviewOptions(loop=False, fps=100, draw_guides=False)

    started = time.monotonic()
    handle = build_loop().start(source, surface, options)

    assert handle.wait(timeout=5)
    elapsed = time.monotonic() - started
    assert handle.frames_drawn == 10
    assert surface.frames_presented == 10
    assert elapsed >= 0.8


def test_unpaced_source_reads_a_frame_every_tick():
    surface = MemorySurface()
    source = FrameSequenceSource([solid((index, index, index)) for index in range(10)])

    started = time.monotonic()
    handle = build_loop().start(source, surface, PreviewOptions(loop=False, fps=100, draw_guides=False))

    assert handle.wait(timeout=5)
    assert handle.frames_drawn == 10
    assert time.monotonic() - started < 0.8


@pytest.fixture
def highgui(monkeypatch):
    """Replace the HighGUI calls with recorders that note the calling thread."""
    state = SimpleNamespace(calls=[], key=-1)

    def recorder(name):
        def fake(*args):
            state.calls.append((name, threading.current_thread().name, args))
            if name == "waitKey":
                return state.key
            return None

        return fake

    for name in ("namedWindow", "setWindowProperty", "imshow", "waitKey", "destroyWindow"):
        monkeypatch.setattr(preview_module.cv2, name, recorder(name))
    return state


def test_window_surface_draws_only_when_pumped(highgui):
    surface = WindowSurface("hologram test")

    worker = threading.Thread(target=surface.present, args=(solid((1, 2, 3)),))
    worker.start()
    worker.join()

    assert highgui.calls == []
    assert surface.pump() == NO_KEY
    names = [name for name, _, _ in highgui.calls]
    assert names == ["namedWindow", "imshow", "waitKey"]
    assert highgui.calls[0][2] == ("hologram test", cv2.WINDOW_AUTOSIZE)

    surface.pump()
    assert [name for name, _, _ in highgui.calls].count("imshow") == 1

    surface.close()
    assert highgui.calls[-1] == ("destroyWindow", threading.current_thread().name, ("hologram test",))


def test_fullscreen_window_surface(highgui):
    surface = WindowSurface("viewer", fullscreen=True)
    surface.present(solid((4, 5, 6)))

    surface.pump()

    assert highgui.calls[0][2] == ("viewer", cv2.WINDOW_NORMAL)
    assert highgui.calls[1][0] == "setWindowProperty"
    assert highgui.calls[1][2] == ("viewer", cv2.WND_PROP_FULLSCREEN, cv2.WINDOW_FULLSCREEN)


def test_preview_window_is_drawn_on_the_pumping_thread(highgui):
    surface = WindowSurface("live")
    handle = build_loop().start(StillSource(solid((9, 9, 9))), surface, PreviewOptions(fps=100))
    try:
        assert wait_for(lambda: handle.frames_drawn >= 3)
        assert highgui.calls == []
        finished = pump_until_done(handle, seconds=0.2)
    finally:
        handle.stop()

    assert finished is False
    shown_on = {thread for name, thread, _ in highgui.calls if name == "imshow"}
    assert shown_on == {threading.current_thread().name}


def test_quit_key_stops_pumping(highgui):
    highgui.key = ord("q")
    surface = WindowSurface("live")
    handle = build_loop().start(StillSource(solid((9, 9, 9))), surface, PreviewOptions(fps=100))
    try:
        assert wait_for(lambda: handle.frames_drawn >= 1)
        started = time.monotonic()
        assert pump_until_done(handle, seconds=5) is False
        assert time.monotonic() - started < 1
    finally:
        handle.stop()


def test_pumping_returns_true_when_the_source_ends():
    source = FrameSequenceSource([solid((1, 1, 1)), solid((2, 2, 2))])
    handle = build_loop().start(source, MemorySurface(), PreviewOptions(loop=False, fps=100))

    assert pump_until_done(handle, seconds=5) is True
    assert handle.frames_drawn == 2
