"""Cross-layout compositing of a source raster into the four-face hologram."""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from hologram_pyramid.geometry import (
    PanelLayout,
    PanelSide,
    panel_transform,
    to_canvas,
    trapezoid_path,
)
from hologram_pyramid.models import Raster


def ensure_bgr(raster: np.ndarray) -> Raster:
    """Normalise grayscale, BGRA and 16-bit input to 3-channel BGR uint8."""
    if raster.dtype == np.uint16:
        raster = (raster >> 8).astype(np.uint8)
    elif raster.dtype != np.uint8:
        raster = np.clip(raster, 0, 255).astype(np.uint8)

    if raster.ndim == 2:
        return cv2.cvtColor(raster, cv2.COLOR_GRAY2BGR)
    if raster.shape[2] == 4:
        return cv2.cvtColor(raster, cv2.COLOR_BGRA2BGR)
    return raster


def cover_fit(source: Raster, width: int, height: int) -> Raster:
    """Scale ``source`` to cover ``width`` x ``height`` and crop the centre."""
    src_h, src_w = source.shape[:2]
    if (src_w, src_h) == (width, height):
        return source

    scale = max(width / src_w, height / src_h)
    scaled_w = max(width, int(round(src_w * scale)))
    scaled_h = max(height, int(round(src_h * scale)))
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    scaled = cv2.resize(source, (scaled_w, scaled_h), interpolation=interpolation)

    x0 = (scaled_w - width) // 2
    y0 = (scaled_h - height) // 2
    return scaled[y0:y0 + height, x0:x0 + width]


def downscale_to_fit(raster: Raster, max_dimension: Optional[int]) -> Raster:
    """Shrink ``raster`` so its larger side is at most ``max_dimension``."""
    if not max_dimension:
        return raster
    height, width = raster.shape[:2]
    largest = max(width, height)
    if largest <= max_dimension:
        return raster
    scale = max_dimension / largest
    size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    return cv2.resize(raster, size, interpolation=cv2.INTER_AREA)


def _draw_with_opacity(canvas: Raster, image: Raster, opacity: float) -> Raster:
    """Source-over draw of an opaque ``image`` at ``opacity`` onto ``canvas``."""
    if opacity >= 1.0:
        return image.copy()
    if opacity <= 0.0:
        return canvas
    return cv2.addWeighted(image, opacity, canvas, 1.0 - opacity, 0.0)


class FrameCompositor:
    """Draw a source raster into the TOP/RIGHT/BOTTOM/LEFT cross layout."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Single source
    # ------------------------------------------------------------------

    def composite(self, source: Raster, layout: PanelLayout) -> Raster:
        size = layout.canvas_size
        output = np.zeros((size, size, 3), dtype=np.uint8)
        return self.render_into(output, source, layout)

    def render_into(self, target: Raster, source: Raster, layout: PanelLayout) -> Raster:
        """Composite ``source`` into an existing square render buffer.

        The buffer is cleared to black first, so every call fully overwrites
        the previous frame.
        """
        size = layout.canvas_size
        if target.shape[:2] != (size, size):
            raise ValueError(
                f"Render target is {target.shape[1]}x{target.shape[0]}, expected {size}x{size}"
            )

        source = ensure_bgr(source)
        target[...] = 0
        src_h, src_w = source.shape[:2]
        draw_size = layout.draw_size
        if draw_size <= 0 or src_w == 0 or src_h == 0:
            return target

        scale = max(draw_size / src_w, draw_size / src_h)
        local_clip = trapezoid_path(
            PanelSide.TOP,
            layout.half_draw_size,
            layout.narrow_edge_ratio,
        )
        mask = np.zeros((size, size), dtype=np.uint8)

        for side in PanelSide:
            matrix = panel_transform(
                side,
                layout.canvas_center,
                layout.gap,
                scale,
                (src_w, src_h),
            )
            warped = cv2.warpAffine(
                source,
                matrix,
                (size, size),
                flags=cv2.INTER_LINEAR,
                borderMode=cv2.BORDER_CONSTANT,
                borderValue=(0, 0, 0),
            )
            polygon = to_canvas(local_clip, side, layout.canvas_center, layout.gap)
            mask[...] = 0
            cv2.fillConvexPoly(mask, np.round(polygon).astype(np.int32), 255)
            selected = mask > 0
            target[selected] = warped[selected]

        return target

    # ------------------------------------------------------------------
    # Blending
    # ------------------------------------------------------------------

    def blend_sources(
        self,
        source_a: Raster,
        source_b: Raster,
        alpha_b: float,
        *,
        max_dimension: Optional[int] = None,
    ) -> Raster:
        """Cross-fade intermediate: A at ``1 - alpha_b`` then B at ``alpha_b`` over black."""
        alpha_b = min(1.0, max(0.0, float(alpha_b)))
        source_a = ensure_bgr(source_a)
        source_b = ensure_bgr(source_b)

        width = max(source_a.shape[1], source_b.shape[1])
        height = max(source_a.shape[0], source_b.shape[0])
        if max_dimension and max(width, height) > max_dimension:
            scale = max_dimension / max(width, height)
            width = max(1, int(round(width * scale)))
            height = max(1, int(round(height * scale)))

        canvas = np.zeros((height, width, 3), dtype=np.uint8)
        opacity_a = 1.0 - alpha_b
        if opacity_a > 0.0:
            canvas = _draw_with_opacity(canvas, cover_fit(source_a, width, height), opacity_a)
        if alpha_b > 0.0:
            canvas = _draw_with_opacity(canvas, cover_fit(source_b, width, height), alpha_b)
        return canvas

    def composite_blend(
        self,
        source_a: Raster,
        source_b: Raster,
        alpha_b: float,
        layout: PanelLayout,
        *,
        max_dimension: Optional[int] = None,
    ) -> Raster:
        blended = self.blend_sources(source_a, source_b, alpha_b, max_dimension=max_dimension)
        return self.composite(blended, layout)

    # ------------------------------------------------------------------
    # Faces
    # ------------------------------------------------------------------

    def extract_faces(self, source: Raster) -> List[Raster]:
        """One ``face_size`` square per side with the rotated source drawn full-cover."""
        source = ensure_bgr(source)
        src_h, src_w = source.shape[:2]
        face_size = max(src_w, src_h)
        scale = max(face_size / src_w, face_size / src_h)
        center = (face_size / 2.0, face_size / 2.0)

        faces: List[Raster] = []
        for side in PanelSide:
            matrix = panel_transform(side, center, 0, scale, (src_w, src_h))
            face = cv2.warpAffine(
                source,
                matrix,
                (face_size, face_size),
                flags=cv2.INTER_LINEAR,
                borderMode=cv2.BORDER_CONSTANT,
                borderValue=(0, 0, 0),
            )
            faces.append(face)
        return faces


__all__ = [
    "FrameCompositor",
    "cover_fit",
    "downscale_to_fit",
    "ensure_bgr",
]
