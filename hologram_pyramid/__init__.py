"""
Hologram pyramid rendering: four-face cross layouts, cross-fade animations,
video conversion and live preview.
"""

from .animation import FadePlan, FadeSequencer
from .app import FadeAnimation, HologramStudio
from .cli import main
from .compositing import FrameCompositor
from .encoding import Encoder, EncodingJob, JobState, SourceVideoOptions
from .errors import (
    CaptureDenied,
    DecodeError,
    EncoderBusy,
    EncoderUnavailable,
    EncoderUnsupported,
    EncodingCancelled,
    EncodingFailed,
    HologramError,
    NoFrames,
)
from .geometry import PanelLayout, PanelSide, compute_layout
from .models import (
    AnimationSpec,
    CapabilityClass,
    Direction,
    EncodedMedia,
    HologramResult,
    OutputFormat,
    ResourceBudget,
    ResultKind,
)
from .preview import (
    LivePreviewLoop,
    LoopHandle,
    MemorySurface,
    PreviewOptions,
    WindowSurface,
    pump_until_done,
)
from .resources import ResourcePolicy, StaticCapabilityProbe

__all__ = [
    "main",
    "HologramStudio",
    "FadeAnimation",
    "FrameCompositor",
    "FadeSequencer",
    "FadePlan",
    "Encoder",
    "EncodingJob",
    "JobState",
    "SourceVideoOptions",
    "LivePreviewLoop",
    "LoopHandle",
    "MemorySurface",
    "PreviewOptions",
    "WindowSurface",
    "pump_until_done",
    "ResourcePolicy",
    "StaticCapabilityProbe",
    "PanelLayout",
    "PanelSide",
    "compute_layout",
    "AnimationSpec",
    "CapabilityClass",
    "Direction",
    "EncodedMedia",
    "HologramResult",
    "OutputFormat",
    "ResourceBudget",
    "ResultKind",
    "HologramError",
    "DecodeError",
    "NoFrames",
    "EncoderUnsupported",
    "EncoderUnavailable",
    "EncoderBusy",
    "EncodingCancelled",
    "EncodingFailed",
    "CaptureDenied",
]
