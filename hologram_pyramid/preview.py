"""Live hologram preview driven by an APScheduler interval job."""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

import cv2
import numpy as np
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hologram_pyramid.compositing import FrameCompositor, downscale_to_fit
from hologram_pyramid.geometry import OVERLAP_MARGIN, PanelLayout, layout_for_raster
from hologram_pyramid.models import Raster
from hologram_pyramid.sources import FrameSource

GUIDE_COLOR = (255, 255, 255)
GUIDE_OPACITY = 0.25
GUIDE_DASH = 4
NO_KEY = -1
QUIT_KEYS = (27, ord("q"))
PUMP_INTERVAL = 0.01


class PreviewSurface(Protocol):
    """Target the preview loop presents scaled frames on.

    ``present`` is called from the scheduler thread. ``pump`` is called by
    whoever owns the display, normally the main thread, and returns the key
    pressed since the last call or ``NO_KEY``.
    """

    def present(self, raster: Raster) -> None:
        ...

    def pump(self) -> int:
        ...

    def close(self) -> None:
        ...


class MemorySurface:
    """Keeps the most recently presented raster."""

    def __init__(self) -> None:
        self.last_frame: Optional[Raster] = None
        self.frames_presented = 0
        self.closed = False

    def present(self, raster: Raster) -> None:
        self.last_frame = raster.copy()
        self.frames_presented += 1

    def pump(self) -> int:
        return NO_KEY

    def close(self) -> None:
        self.closed = True


class WindowSurface:
    """OpenCV HighGUI window.

    HighGUI must only be driven from one thread, so ``present`` just hands the
    latest frame over and ``pump`` shows it and polls the keyboard.
    """

    def __init__(self, window_name: str = "Hologram preview", *, fullscreen: bool = False) -> None:
        self.window_name = window_name
        self.fullscreen = fullscreen
        self._lock = threading.Lock()
        self._pending: Optional[Raster] = None
        self._created = False

    def present(self, raster: Raster) -> None:
        with self._lock:
            self._pending = raster

    def _create_window(self) -> None:
        if self.fullscreen:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            cv2.setWindowProperty(self.window_name, cv2.WND_PROP_FULLSCREEN, cv2.WINDOW_FULLSCREEN)
        else:
            cv2.namedWindow(self.window_name, cv2.WINDOW_AUTOSIZE)
        self._created = True

    def pump(self) -> int:
        with self._lock:
            frame, self._pending = self._pending, None
        if frame is not None:
            if not self._created:
                self._create_window()
            cv2.imshow(self.window_name, frame)
        if not self._created:
            return NO_KEY
        key = cv2.waitKey(1)
        return NO_KEY if key < 0 else key & 0xFF

    def close(self) -> None:
        if self._created:
            cv2.destroyWindow(self.window_name)
            self._created = False


def draw_cross_guides(raster: Raster) -> Raster:
    """Overlay faint dashed lines through the centre (preview only)."""
    height, width = raster.shape[:2]
    overlay = raster.copy()
    cx, cy = width // 2, height // 2
    for start in range(0, height, GUIDE_DASH * 2):
        end = min(height - 1, start + GUIDE_DASH - 1)
        cv2.line(overlay, (cx, start), (cx, end), GUIDE_COLOR, 1)
    for start in range(0, width, GUIDE_DASH * 2):
        end = min(width - 1, start + GUIDE_DASH - 1)
        cv2.line(overlay, (start, cy), (end, cy), GUIDE_COLOR, 1)
    return cv2.addWeighted(overlay, GUIDE_OPACITY, raster, 1.0 - GUIDE_OPACITY, 0.0)


@dataclass
class PreviewOptions:
    max_width: int = 800
    loop: bool = True
    fps: float = 60.0
    draw_guides: bool = True
    prerendered: bool = False
    on_frame: Optional[Callable[[Raster], None]] = None
    on_after_draw: Optional[Callable[[], None]] = None


class LoopHandle:
    """Handle returned by :meth:`LivePreviewLoop.start`."""

    def __init__(
        self,
        scheduler: BackgroundScheduler,
        source: FrameSource,
        surface: PreviewSurface,
        logger: logging.Logger,
    ) -> None:
        self._scheduler = scheduler
        self._source = source
        self.surface = surface
        self._logger = logger
        self._lock = threading.Lock()
        self._stopped = False
        self._done = threading.Event()
        self.frames_drawn = 0
        self.error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return not self._done.is_set()

    def stop(self) -> None:
        """Halt scheduling and pause the source. Safe to call repeatedly."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._source.pause()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._done.set()
        self._logger.debug("Preview loop stopped after %s frames", self.frames_drawn)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the loop ends; returns ``False`` on timeout."""
        return self._done.wait(timeout)


class _TickOutcome(enum.Enum):
    DRAWN = "drawn"
    IDLE = "idle"
    ENDED = "ended"


class LivePreviewLoop:
    """Composite frames from a live or looping source onto a preview surface.

    The scheduler ticks at ``PreviewOptions.fps``, the display refresh rate.
    Sources that report their own frame rate are read no faster than that
    rate, so a 24 fps clip plays at normal speed on a 60 Hz preview.
    """

    def __init__(
        self,
        compositor: Optional[FrameCompositor] = None,
        *,
        overlap_margin: float = OVERLAP_MARGIN,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.compositor = compositor or FrameCompositor(logger=self.logger)
        self.overlap_margin = overlap_margin

    def start(
        self,
        source: FrameSource,
        target_surface: PreviewSurface,
        options: Optional[PreviewOptions] = None,
    ) -> LoopHandle:
        options = options or PreviewOptions()
        scheduler = BackgroundScheduler()
        handle = LoopHandle(scheduler, source, target_surface, self.logger)
        state = _PreviewState()

        def tick() -> None:
            if not handle.running:
                return
            try:
                outcome = self._tick(source, target_surface, options, state)
            except Exception as exc:
                self.logger.exception("Preview loop tick failed; stopping")
                handle.error = exc
                handle.stop()
                return
            if outcome is _TickOutcome.ENDED:
                self.logger.info("Preview source ended after %s frames", handle.frames_drawn)
                handle.stop()
            elif outcome is _TickOutcome.DRAWN:
                handle.frames_drawn += 1

        interval = 1.0 / max(1.0, float(options.fps))
        scheduler.add_job(
            tick,
            trigger=IntervalTrigger(seconds=interval),
            id="hologram_preview",
            name="Hologram Preview",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        scheduler.start()
        self.logger.info(
            "Preview loop started at up to %0.1f fps (source %s fps, max width %s, loop=%s)",
            options.fps,
            source.fps or "unpaced",
            options.max_width,
            options.loop,
        )
        return handle

    def _tick(
        self,
        source: FrameSource,
        surface: PreviewSurface,
        options: PreviewOptions,
        state: "_PreviewState",
    ) -> _TickOutcome:
        if not state.frame_due(source.fps):
            return _TickOutcome.IDLE

        frame = source.read()
        if frame is None:
            if not options.loop:
                return _TickOutcome.ENDED
            source.rewind()
            state.restart_clock()
            frame = source.read()
            if frame is None:
                return _TickOutcome.ENDED
        state.frames_read += 1

        if options.prerendered:
            buffer = frame
        else:
            if state.layout is None:
                state.layout = layout_for_raster(frame, overlap_margin=self.overlap_margin)
                size = state.layout.canvas_size
                state.buffer = np.zeros((size, size, 3), dtype=np.uint8)
            buffer = self.compositor.render_into(state.buffer, frame, state.layout)

        if options.on_frame is not None:
            options.on_frame(buffer)

        scaled = downscale_to_fit(buffer, options.max_width)
        if options.draw_guides:
            scaled = draw_cross_guides(scaled)
        surface.present(scaled)

        if options.on_after_draw is not None:
            options.on_after_draw()
        return _TickOutcome.DRAWN


def pump_until_done(
    handle: LoopHandle,
    seconds: Optional[float] = None,
    *,
    poll_interval: float = PUMP_INTERVAL,
) -> bool:
    """Drive ``handle.surface`` on the calling thread until the loop ends.

    Returns ``True`` when the source ended by itself and ``False`` when
    ``seconds`` ran out or q or Esc was pressed in the window.
    """
    deadline = None if seconds is None else time.monotonic() + seconds
    while not handle.wait(poll_interval):
        if handle.surface.pump() in QUIT_KEYS:
            return False
        if deadline is not None and time.monotonic() >= deadline:
            return False
    return True


class _PreviewState:
    """Render buffer reused across ticks, plus the source playback clock."""

    def __init__(self) -> None:
        self.layout: Optional[PanelLayout] = None
        self.buffer: Optional[Raster] = None
        self.clock_start: Optional[float] = None
        self.frames_read = 0

    def restart_clock(self) -> None:
        self.clock_start = time.monotonic()
        self.frames_read = 0

    def frame_due(self, fps: Optional[float]) -> bool:
        """Whether the next source frame should be shown by now."""
        if not fps:
            return True
        if self.clock_start is None:
            self.restart_clock()
        elapsed = time.monotonic() - self.clock_start
        # Frames become due half a frame early.
        due = int(elapsed * fps + 0.5) + 1
        return self.frames_read < due


__all__ = [
    "LivePreviewLoop",
    "LoopHandle",
    "MemorySurface",
    "NO_KEY",
    "PreviewOptions",
    "PreviewSurface",
    "WindowSurface",
    "draw_cross_guides",
    "pump_until_done",
]
