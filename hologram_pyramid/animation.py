"""Cross-fade animation frames in hologram format."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Dict, Iterator, List, Optional, Tuple

from hologram_pyramid.compositing import FrameCompositor
from hologram_pyramid.geometry import OVERLAP_MARGIN, PanelLayout, compute_layout
from hologram_pyramid.models import AnimationSpec, Direction, Raster, ResourceBudget
from hologram_pyramid.progress import eta_string
from hologram_pyramid.resources import ResourcePolicy
from hologram_pyramid.sources import SourceLike, load_raster


def resolve_frame_count(duration_seconds: float, fps: float, max_frames: int) -> int:
    requested = int(round(float(duration_seconds) * float(fps)))
    return max(2, min(requested, max(2, int(max_frames))))


def build_alpha_indices(frame_count: int, direction: Direction) -> List[int]:
    """Indices into the forward alpha ramp in playback order."""
    forward = list(range(frame_count))
    direction = Direction.parse(direction)
    if direction is Direction.REVERSE:
        return forward[::-1]
    if direction is Direction.PINGPONG and frame_count > 2:
        return forward + forward[-2:0:-1]
    return forward


def build_alpha_sequence(frame_count: int, direction: Direction) -> List[float]:
    """Alpha of image B for every frame, ``i / (n - 1)`` before ``direction``."""
    if frame_count <= 1:
        ramp = [1.0] * max(frame_count, 0)
    else:
        ramp = [i / (frame_count - 1) for i in range(frame_count)]
    return [ramp[index] for index in build_alpha_indices(frame_count, direction)]


@dataclass(frozen=True)
class FadePlan:
    """Frame timing resolved from an :class:`AnimationSpec` and a budget."""

    budget: ResourceBudget
    fps: int
    frame_count: int
    indices: Tuple[int, ...]
    alphas: Tuple[float, ...]

    @property
    def total_frames(self) -> int:
        return len(self.indices)


class FadeSequencer:
    """Generate hologram frames fading from image A to image B."""

    def __init__(
        self,
        compositor: Optional[FrameCompositor] = None,
        policy: Optional[ResourcePolicy] = None,
        *,
        overlap_margin: float = OVERLAP_MARGIN,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.overlap_margin = overlap_margin
        self.compositor = compositor or FrameCompositor(logger=self.logger)
        self.policy = policy or ResourcePolicy(logger=self.logger)

    def plan(self, spec: AnimationSpec, budget: Optional[ResourceBudget] = None) -> FadePlan:
        budget = budget or self.policy.snapshot()
        fps = max(1, int(spec.fps))
        if budget.max_fps is not None:
            fps = min(fps, budget.max_fps)

        frame_count = resolve_frame_count(spec.duration_seconds, fps, budget.max_frames)
        indices = build_alpha_indices(frame_count, spec.direction)
        ramp = [i / (frame_count - 1) for i in range(frame_count)]
        return FadePlan(
            budget=budget,
            fps=fps,
            frame_count=frame_count,
            indices=tuple(indices),
            alphas=tuple(ramp[i] for i in indices),
        )

    def _prepare(
        self,
        image_a: SourceLike,
        image_b: SourceLike,
        spec: AnimationSpec,
        plan: Optional[FadePlan] = None,
    ) -> Tuple[Raster, Raster, FadePlan, PanelLayout]:
        # Both inputs are decoded before any frame is produced.
        raster_a = load_raster(image_a)
        raster_b = load_raster(image_b)
        if plan is None:
            plan = self.plan(spec)

        max_dim = plan.budget.max_raster_dimension
        width = max(raster_a.shape[1], raster_b.shape[1])
        height = max(raster_a.shape[0], raster_b.shape[0])
        largest = max(width, height)
        if largest > max_dim:
            scale = max_dim / largest
            width = max(1, int(round(width * scale)))
            height = max(1, int(round(height * scale)))
        layout = compute_layout(max(width, height), overlap_margin=self.overlap_margin)

        self.logger.info(
            "Generating %s fade frames (%s unique) at %s fps, %s, blend %sx%s -> hologram %sx%s",
            plan.total_frames,
            plan.frame_count,
            plan.fps,
            Direction.parse(spec.direction).value,
            width,
            height,
            layout.canvas_size,
            layout.canvas_size,
        )
        return raster_a, raster_b, plan, layout

    def _render(
        self,
        raster_a: Raster,
        raster_b: Raster,
        alpha: float,
        layout: PanelLayout,
        max_dimension: int,
    ) -> Raster:
        blended = self.compositor.blend_sources(
            raster_a,
            raster_b,
            alpha,
            max_dimension=max_dimension,
        )
        frame = self.compositor.composite(blended, layout)
        del blended
        return frame

    def iter_frames(
        self,
        image_a: SourceLike,
        image_b: SourceLike,
        spec: AnimationSpec,
        plan: Optional[FadePlan] = None,
    ) -> Iterator[Raster]:
        """Yield frames one at a time, rendering each alpha on demand."""
        raster_a, raster_b, plan, layout = self._prepare(image_a, image_b, spec, plan)
        max_dim = plan.budget.max_raster_dimension
        for alpha in plan.alphas:
            yield self._render(raster_a, raster_b, alpha, layout, max_dim)

    def generate(
        self,
        image_a: SourceLike,
        image_b: SourceLike,
        spec: AnimationSpec,
        plan: Optional[FadePlan] = None,
    ) -> List[Raster]:
        """Render the whole sequence.

        Frames repeated by ``reverse`` or ``pingpong`` share the raster
        rendered for their ramp index, so each distinct alpha is blended once.
        Pass ``plan`` to render against an already taken budget snapshot.
        """
        raster_a, raster_b, plan, layout = self._prepare(image_a, image_b, spec, plan)
        max_dim = plan.budget.max_raster_dimension
        rendered: Dict[int, Raster] = {}
        frames: List[Raster] = []
        total = plan.total_frames
        progress_interval = max(1, total // 20)
        progress_start = perf_counter()

        for position, (index, alpha) in enumerate(zip(plan.indices, plan.alphas), start=1):
            frame = rendered.get(index)
            if frame is None:
                frame = self._render(raster_a, raster_b, alpha, layout, max_dim)
                rendered[index] = frame
            frames.append(frame)

            if position % progress_interval == 0 or position == total:
                self.logger.info(
                    "Fade rendering progress: %s/%s frames (%0.1f%%, %s)",
                    position,
                    total,
                    100.0 * position / total,
                    eta_string(perf_counter() - progress_start, position, total),
                )

        return frames


__all__ = [
    "FadePlan",
    "FadeSequencer",
    "build_alpha_indices",
    "build_alpha_sequence",
    "resolve_frame_count",
]
