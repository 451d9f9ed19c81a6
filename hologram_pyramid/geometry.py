"""Panel placement and clip geometry for the four-face pyramid layout."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

CENTER_GAP_RATIO = 0.25
OVERLAP_MARGIN = 1.05
NARROW_EDGE_RATIO = 0.45


class PanelSide(Enum):
    """The four faces of the cross layout with their fixed rotation in degrees.

    Angles follow canvas conventions (y axis pointing down), so a positive
    angle turns clockwise on screen. Each rotation maps the local +y axis
    towards the shared centre of the canvas.
    """

    TOP = 0
    RIGHT = 90
    BOTTOM = 180
    LEFT = -90

    @property
    def angle_degrees(self) -> int:
        return self.value

    @property
    def angle_radians(self) -> float:
        return math.radians(self.value)


@dataclass(frozen=True)
class PanelLayout:
    """Derived panel dimensions for a given face size."""

    face_size: int
    gap: int
    draw_size: int
    narrow_edge_ratio: float = NARROW_EDGE_RATIO

    @property
    def canvas_size(self) -> int:
        return 2 * self.gap + self.face_size

    @property
    def canvas_center(self) -> Tuple[float, float]:
        half = self.canvas_size / 2.0
        return (half, half)

    @property
    def half_draw_size(self) -> float:
        return self.draw_size / 2.0


def compute_layout(
    face_size: int,
    center_gap_ratio: float = CENTER_GAP_RATIO,
    overlap_margin: float = OVERLAP_MARGIN,
    narrow_edge_ratio: float = NARROW_EDGE_RATIO,
) -> PanelLayout:
    """Compute the gap and panel draw size for ``face_size``.

    ``draw_size`` never exceeds ``face_size`` nor ``gap * sqrt(2) * overlap_margin``.
    """
    face_size = int(face_size)
    if face_size < 2:
        raise ValueError(f"face_size must be at least 2, got {face_size}")
    gap = int(round(face_size * center_gap_ratio))
    draw_size = min(face_size, int(math.floor(gap * math.sqrt(2) * overlap_margin)))
    return PanelLayout(
        face_size=face_size,
        gap=gap,
        draw_size=draw_size,
        narrow_edge_ratio=narrow_edge_ratio,
    )


def layout_for_raster(raster: np.ndarray, **kwargs) -> PanelLayout:
    """Layout whose face size is the larger dimension of ``raster``."""
    height, width = raster.shape[:2]
    return compute_layout(max(width, height), **kwargs)


def panel_center(
    side: PanelSide,
    canvas_center: Tuple[float, float],
    gap: float,
) -> Tuple[float, float]:
    cx, cy = canvas_center
    if side is PanelSide.TOP:
        return (cx, cy - gap)
    if side is PanelSide.RIGHT:
        return (cx + gap, cy)
    if side is PanelSide.BOTTOM:
        return (cx, cy + gap)
    return (cx - gap, cy)


def trapezoid_path(
    side: PanelSide,
    half_draw_size: float,
    narrow_edge_ratio: float = NARROW_EDGE_RATIO,
) -> np.ndarray:
    """Trapezoid clip polygon in the side's local (post-rotation) frame.

    The narrow edge sits at local ``+half_draw_size`` y and the wide edge at
    ``-half_draw_size`` y. The shape is the same for every side because the
    side's rotation already points local +y at the centre; ``side`` is kept
    in the signature so callers stay explicit about which face they clip.
    """
    del side
    h = float(half_draw_size)
    narrow = h * narrow_edge_ratio
    return np.array(
        [
            (-h, -h),
            (h, -h),
            (narrow, h),
            (-narrow, h),
        ],
        dtype=np.float64,
    )


def rotation_matrix(side: PanelSide) -> np.ndarray:
    """2x2 matrix applying the side's canvas rotation."""
    theta = side.angle_radians
    cos_t = round(math.cos(theta), 12)
    sin_t = round(math.sin(theta), 12)
    return np.array([[cos_t, -sin_t], [sin_t, cos_t]], dtype=np.float64)


def to_canvas(
    points: np.ndarray,
    side: PanelSide,
    canvas_center: Tuple[float, float],
    gap: float,
) -> np.ndarray:
    """Map local panel coordinates to canvas coordinates."""
    center = np.asarray(panel_center(side, canvas_center, gap), dtype=np.float64)
    return np.asarray(points, dtype=np.float64) @ rotation_matrix(side).T + center


def panel_transform(
    side: PanelSide,
    canvas_center: Tuple[float, float],
    gap: float,
    scale: float,
    source_size: Tuple[int, int],
) -> np.ndarray:
    """2x3 affine matrix drawing a source of ``source_size`` (w, h) onto a panel.

    The source is centred on the origin, scaled, rotated by the side's angle
    and translated to the panel centre.
    """
    src_w, src_h = source_size
    linear = rotation_matrix(side) * float(scale)
    center = np.asarray(panel_center(side, canvas_center, gap), dtype=np.float64)
    offset = center - linear @ np.array([src_w / 2.0, src_h / 2.0])
    return np.hstack([linear, offset.reshape(2, 1)])


__all__ = [
    "CENTER_GAP_RATIO",
    "NARROW_EDGE_RATIO",
    "OVERLAP_MARGIN",
    "PanelLayout",
    "PanelSide",
    "compute_layout",
    "layout_for_raster",
    "panel_center",
    "panel_transform",
    "rotation_matrix",
    "to_canvas",
    "trapezoid_path",
]
