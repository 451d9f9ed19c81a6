"""Configuration dataclasses and loading helpers for the hologram pipeline."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from dotenv import load_dotenv

from hologram_pyramid.geometry import CENTER_GAP_RATIO, NARROW_EDGE_RATIO, OVERLAP_MARGIN
from hologram_pyramid.models import AnimationSpec, CapabilityClass, Direction

BUSY_POLICIES = ("reject", "queue")
KNOWN_VIDEO_CODECS = ("vp9", "vp8", "h264", "mpeg4")
ENV_PREFIX = "HOLOGRAM_"


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_int(value: Any, default: int) -> int:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_positive_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_choice(value: Any, choices: Tuple[str, ...], default: str) -> str:
    if value is None:
        return default
    candidate = str(value).strip().lower()
    return candidate if candidate in choices else default


def _parse_codec_list(value: Any, default: Tuple[str, ...]) -> Tuple[str, ...]:
    """Parse a codec preference list from a JSON list or a comma separated string."""
    if isinstance(value, str):
        items = [item.strip().lower() for item in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(item).strip().lower() for item in value]
    else:
        return default
    codecs = tuple(dict.fromkeys(item for item in items if item in KNOWN_VIDEO_CODECS))
    return codecs or default


def _parse_direction(value: Any, default: Direction) -> Direction:
    if value is None:
        return default
    try:
        return Direction.parse(value)
    except ValueError:
        return default


def _parse_capability(value: Any) -> Optional[CapabilityClass]:
    if value is None:
        return None
    candidate = str(value).strip().lower()
    if candidate in ("", "auto"):
        return None
    try:
        return CapabilityClass(candidate)
    except ValueError:
        return None


@dataclass(frozen=True)
class GeometrySettings:
    """Panel geometry constants.

    ``center_gap_ratio`` and ``narrow_edge_ratio`` are fixed properties of the
    layout and are not read from configuration.
    """

    center_gap_ratio: float = CENTER_GAP_RATIO
    overlap_margin: float = OVERLAP_MARGIN
    narrow_edge_ratio: float = NARROW_EDGE_RATIO


@dataclass(frozen=True)
class AnimationSettings:
    """Defaults applied to fade animations."""

    duration_seconds: float = 2.0
    fps: int = 24
    direction: Direction = Direction.PINGPONG
    loop: bool = True

    def to_spec(self, **overrides: Any) -> AnimationSpec:
        values = {
            "duration_seconds": self.duration_seconds,
            "fps": self.fps,
            "direction": self.direction,
            "loop": self.loop,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return AnimationSpec(**values)


@dataclass(frozen=True)
class PreviewSettings:
    """Settings for the on-screen preview loop."""

    max_width: int = 800
    refresh_rate: int = 60
    draw_guides: bool = True
    window_name: str = "Hologram preview"
    fullscreen: bool = False


@dataclass(frozen=True)
class EncoderSettings:
    """Settings for the external video encoder and export jobs."""

    ffmpeg_binary: str = "ffmpeg"
    video_codecs: Tuple[str, ...] = KNOWN_VIDEO_CODECS
    video_quality: int = 23
    realtime_pacing: bool = False
    source_realtime: bool = True
    busy_policy: str = "reject"


@dataclass(frozen=True)
class Settings:
    """Root configuration object."""

    geometry: GeometrySettings = field(default_factory=GeometrySettings)
    animation: AnimationSettings = field(default_factory=AnimationSettings)
    preview: PreviewSettings = field(default_factory=PreviewSettings)
    encoder: EncoderSettings = field(default_factory=EncoderSettings)
    capability_class: Optional[CapabilityClass] = None
    log_file: Optional[Path] = None


def _parse_animation_settings(raw: Mapping[str, Any]) -> AnimationSettings:
    default = AnimationSettings()
    if not isinstance(raw, Mapping):
        return default
    return AnimationSettings(
        duration_seconds=_parse_positive_float(raw.get("duration_seconds"), default.duration_seconds),
        fps=_parse_positive_int(raw.get("fps"), default.fps),
        direction=_parse_direction(raw.get("direction"), default.direction),
        loop=_parse_bool(raw.get("loop"), default.loop),
    )


def _parse_preview_settings(raw: Mapping[str, Any]) -> PreviewSettings:
    default = PreviewSettings()
    if not isinstance(raw, Mapping):
        return default
    return PreviewSettings(
        max_width=_parse_positive_int(raw.get("max_width"), default.max_width),
        refresh_rate=_parse_positive_int(raw.get("refresh_rate"), default.refresh_rate),
        draw_guides=_parse_bool(raw.get("draw_guides"), default.draw_guides),
        window_name=str(raw.get("window_name") or default.window_name),
        fullscreen=_parse_bool(raw.get("fullscreen"), default.fullscreen),
    )


def _parse_encoder_settings(raw: Mapping[str, Any]) -> EncoderSettings:
    default = EncoderSettings()
    if not isinstance(raw, Mapping):
        return default
    return EncoderSettings(
        ffmpeg_binary=str(raw.get("ffmpeg_binary") or default.ffmpeg_binary),
        video_codecs=_parse_codec_list(raw.get("video_codecs"), default.video_codecs),
        video_quality=_parse_positive_int(raw.get("video_quality"), default.video_quality),
        realtime_pacing=_parse_bool(raw.get("realtime_pacing"), default.realtime_pacing),
        source_realtime=_parse_bool(raw.get("source_realtime"), default.source_realtime),
        busy_policy=_parse_choice(raw.get("busy_policy"), BUSY_POLICIES, default.busy_policy),
    )


def _parse_settings(data: Mapping[str, Any]) -> Settings:
    overlap_margin = _parse_positive_float(
        (data.get("geometry") or {}).get("overlap_margin")
        if isinstance(data.get("geometry"), Mapping)
        else None,
        OVERLAP_MARGIN,
    )
    log_file = data.get("log_file")
    return Settings(
        geometry=GeometrySettings(overlap_margin=overlap_margin),
        animation=_parse_animation_settings(data.get("animation", {})),
        preview=_parse_preview_settings(data.get("preview", {})),
        encoder=_parse_encoder_settings(data.get("encoder", {})),
        capability_class=_parse_capability(data.get("capability_class")),
        log_file=Path(log_file) if log_file else None,
    )


def _settings_from_env(env: Mapping[str, str]) -> Settings:
    """Fallback configuration derived from ``HOLOGRAM_*`` environment variables."""

    def get(name: str) -> Optional[str]:
        return env.get(f"{ENV_PREFIX}{name}")

    return _parse_settings(
        {
            "geometry": {"overlap_margin": get("OVERLAP_MARGIN")},
            "animation": {
                "duration_seconds": get("DURATION_SECONDS"),
                "fps": get("FPS"),
                "direction": get("DIRECTION"),
                "loop": get("LOOP"),
            },
            "preview": {
                "max_width": get("PREVIEW_MAX_WIDTH"),
                "refresh_rate": get("PREVIEW_REFRESH_RATE"),
                "draw_guides": get("PREVIEW_GUIDES"),
                "fullscreen": get("PREVIEW_FULLSCREEN"),
            },
            "encoder": {
                "ffmpeg_binary": get("FFMPEG"),
                "video_codecs": get("VIDEO_CODECS"),
                "video_quality": get("VIDEO_QUALITY"),
                "realtime_pacing": get("REALTIME_PACING"),
                "source_realtime": get("SOURCE_REALTIME"),
                "busy_policy": get("BUSY_POLICY"),
            },
            "capability_class": get("CAPABILITY_CLASS"),
            "log_file": get("LOG_FILE"),
        }
    )


def load_config(
    config_path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from a JSON file, or from the environment when it is absent."""
    if env is None:
        load_dotenv()
        env = os.environ

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, Mapping):
                raise ValueError(f"Configuration file {path} must contain a JSON object")
            return _parse_settings(data)

    return _settings_from_env(env)


__all__ = [
    "AnimationSettings",
    "EncoderSettings",
    "GeometrySettings",
    "PreviewSettings",
    "Settings",
    "load_config",
    "_parse_bool",
    "_parse_codec_list",
    "_parse_positive_int",
]
