"""Exception taxonomy for the hologram rendering and encoding pipeline."""

from __future__ import annotations


class HologramError(Exception):
    """Base class for every failure raised by the pipeline.

    ``kind`` is a stable identifier a UI layer can map to an actionable
    message without parsing the exception text.
    """

    kind = "hologram_error"


class DecodeError(HologramError):
    """A source image or video could not be decoded."""

    kind = "decode_error"


class NoFrames(HologramError):
    """An encoder was handed an empty frame sequence."""

    kind = "no_frames"


class EncoderUnsupported(HologramError):
    """The recorder (ffmpeg) or a usable streaming codec is not available."""

    kind = "encoder_unsupported"


class EncoderUnavailable(HologramError):
    """The GIF encoder library could not be loaded."""

    kind = "encoder_unavailable"


class EncoderBusy(HologramError):
    """An encoding job is already running on this encoder."""

    kind = "encoder_busy"


class EncodingCancelled(HologramError):
    """The encoding job was cancelled before it completed."""

    kind = "encoding_cancelled"


class EncodingFailed(HologramError):
    """The external encoder exited with an error."""

    kind = "encoding_failed"

    def __init__(self, message: str, *, stderr: bytes = b"") -> None:
        super().__init__(message)
        self.stderr = stderr


class CaptureDenied(HologramError):
    """A camera or stream device could not be opened."""

    kind = "capture_denied"


__all__ = [
    "CaptureDenied",
    "DecodeError",
    "EncoderBusy",
    "EncoderUnavailable",
    "EncoderUnsupported",
    "EncodingCancelled",
    "EncodingFailed",
    "HologramError",
    "NoFrames",
]
