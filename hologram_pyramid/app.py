"""
Hologram Pyramid studio facade.
Wires configuration, logging and the rendering/encoding components together
for controllers such as the command line interface.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from hologram_pyramid.animation import FadePlan, FadeSequencer
from hologram_pyramid.compositing import FrameCompositor, downscale_to_fit
from hologram_pyramid.config import Settings, load_config
from hologram_pyramid.encoding import Encoder, SourceVideoOptions
from hologram_pyramid.errors import CaptureDenied
from hologram_pyramid.geometry import PanelLayout, layout_for_raster
from hologram_pyramid.logging_setup import configure_logging
from hologram_pyramid.models import (
    AnimationSpec,
    Direction,
    EncodedMedia,
    HologramResult,
    OutputFormat,
    Raster,
)
from hologram_pyramid.preview import (
    LivePreviewLoop,
    LoopHandle,
    PreviewOptions,
    PreviewSurface,
    WindowSurface,
)
from hologram_pyramid.progress import ProgressCallback
from hologram_pyramid.resources import CapabilityProbe, ResourcePolicy
from hologram_pyramid.sources import (
    FrameSequenceSource,
    FrameSource,
    SourceLike,
    VideoCaptureSource,
    load_raster,
)


@dataclass
class FadeAnimation:
    """Rendered fade frames together with their playback settings."""

    frames: List[Raster]
    fps: int
    loop: bool
    plan: FadePlan


class HologramStudio:
    def __init__(
        self,
        config_file: Union[str, Path, None] = None,
        *,
        settings: Optional[Settings] = None,
        probe: Optional[CapabilityProbe] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or load_config(config_file)
        self.logger = logger or self.setup_logging()

        self.policy = ResourcePolicy(
            probe,
            override=self.settings.capability_class,
            logger=self.logger,
        )
        overlap_margin = self.settings.geometry.overlap_margin
        self.compositor = FrameCompositor(logger=self.logger)
        self.sequencer = FadeSequencer(
            self.compositor,
            self.policy,
            overlap_margin=overlap_margin,
            logger=self.logger,
        )
        self.encoder = Encoder(
            self.settings.encoder,
            compositor=self.compositor,
            policy=self.policy,
            overlap_margin=overlap_margin,
            logger=self.logger,
        )
        self.preview_loop = LivePreviewLoop(
            self.compositor,
            overlap_margin=overlap_margin,
            logger=self.logger,
        )

    def setup_logging(self) -> logging.Logger:
        """Setup logging configuration"""
        return configure_logging(log_file=self.settings.log_file)

    # ------------------------------------------------------------------
    # Stills
    # ------------------------------------------------------------------

    def layout_for(self, raster: Raster) -> PanelLayout:
        return layout_for_raster(raster, overlap_margin=self.settings.geometry.overlap_margin)

    def format_image(self, source: SourceLike) -> Raster:
        """Decode ``source`` and return its hologram cross layout."""
        budget = self.policy.snapshot()
        raster = downscale_to_fit(load_raster(source), budget.max_raster_dimension)
        layout = self.layout_for(raster)
        self.logger.info(
            "Formatting %sx%s image into %sx%s hologram (gap %s, panel %s)",
            raster.shape[1],
            raster.shape[0],
            layout.canvas_size,
            layout.canvas_size,
            layout.gap,
            layout.draw_size,
        )
        return self.compositor.composite(raster, layout)

    def export_image(self, source: SourceLike) -> EncodedMedia:
        return self.encoder.encode_still(self.format_image(source))

    def extract_faces(self, source: SourceLike) -> List[Raster]:
        budget = self.policy.snapshot()
        raster = downscale_to_fit(load_raster(source), budget.max_raster_dimension)
        return self.compositor.extract_faces(raster)

    def capture_camera_frame(self, camera_index: int = 0) -> Raster:
        """Grab one frame from a camera."""
        camera = VideoCaptureSource(camera_index, logger=self.logger)
        try:
            frame = camera.read()
        finally:
            camera.release()
        if frame is None:
            raise CaptureDenied(f"Camera {camera_index} did not deliver a frame")
        return frame

    # ------------------------------------------------------------------
    # Animation
    # ------------------------------------------------------------------

    def animation_spec(
        self,
        *,
        duration_seconds: Optional[float] = None,
        fps: Optional[int] = None,
        direction: Union[Direction, str, None] = None,
        loop: Optional[bool] = None,
    ) -> AnimationSpec:
        return self.settings.animation.to_spec(
            duration_seconds=duration_seconds,
            fps=fps,
            direction=direction,
            loop=loop,
        )

    def generate_fade(
        self,
        image_a: SourceLike,
        image_b: SourceLike,
        spec: Optional[AnimationSpec] = None,
    ) -> FadeAnimation:
        spec = spec or self.animation_spec()
        plan = self.sequencer.plan(spec)
        frames = self.sequencer.generate(image_a, image_b, spec, plan)
        return FadeAnimation(frames=frames, fps=plan.fps, loop=spec.loop, plan=plan)

    def export_animation(
        self,
        animation: FadeAnimation,
        output_format: Union[OutputFormat, str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> EncodedMedia:
        output_format = OutputFormat(output_format)
        if output_format is OutputFormat.GIF:
            return self.encoder.encode_to_gif(
                animation.frames,
                animation.fps,
                on_progress,
                loop=animation.loop,
            )
        return self.encoder.encode_to_video(animation.frames, animation.fps, on_progress)

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def convert_video(
        self,
        video: Union[bytes, str, Path],
        on_progress: Optional[ProgressCallback] = None,
        *,
        realtime: Optional[bool] = None,
    ) -> HologramResult:
        suffix = ".mp4"
        if isinstance(video, (str, Path)):
            path = Path(video)
            suffix = path.suffix or suffix
            video = path.read_bytes()
        options = SourceVideoOptions(suffix=suffix, realtime=realtime)
        result = self.encoder.process_source_video_to_hologram(video, options, on_progress)
        if result.is_fallback:
            self.logger.warning("Video conversion fell back to a still image: %s", result.fallback_reason)
        return result

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def _preview_options(self, **overrides) -> PreviewOptions:
        preview = self.settings.preview
        options = PreviewOptions(
            max_width=preview.max_width,
            fps=preview.refresh_rate,
            draw_guides=preview.draw_guides,
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(options, key, value)
        return options

    def preview_window(self, fullscreen: Optional[bool] = None) -> WindowSurface:
        preview = self.settings.preview
        if fullscreen is None:
            fullscreen = preview.fullscreen
        return WindowSurface(preview.window_name, fullscreen=fullscreen)

    def start_preview(
        self,
        source: FrameSource,
        surface: Optional[PreviewSurface] = None,
        **overrides,
    ) -> LoopHandle:
        """Start the preview loop.

        A window surface only shows frames when its ``pump`` is called; see
        ``LoopHandle.surface``.
        """
        surface = surface or self.preview_window()
        return self.preview_loop.start(source, surface, self._preview_options(**overrides))

    def preview_animation(
        self,
        animation: FadeAnimation,
        surface: Optional[PreviewSurface] = None,
    ) -> LoopHandle:
        """Play rendered fade frames at their own frame rate."""
        source = FrameSequenceSource(animation.frames, fps=animation.fps)
        return self.start_preview(
            source,
            surface,
            loop=animation.loop,
            prerendered=True,
        )


__all__ = ["FadeAnimation", "HologramStudio"]
