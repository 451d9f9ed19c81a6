"""
Command line interface for rendering and exporting hologram pyramid media.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .app import HologramStudio
from .errors import DecodeError, HologramError
from .logging_setup import configure_logging
from .models import Direction, EncodedMedia, OutputFormat, Raster
from .preview import LoopHandle, MemorySurface, PreviewSurface, pump_until_done
from .sources import (
    FrameSource,
    StillSource,
    VideoCaptureSource,
    load_raster,
    read_representative_frame,
)

FACE_NAMES = ("top", "right", "bottom", "left")
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tif", ".tiff"}


def _output_path(requested: Path, media: EncodedMedia) -> Path:
    """Keep the requested name but use the extension of what was encoded."""
    suffix = f".{media.extension}"
    if requested.suffix.lower() == suffix:
        return requested
    adjusted = requested.with_suffix(suffix)
    logging.info("Writing %s output to %s instead of %s", media.mime_type, adjusted, requested)
    return adjusted


def _write_media(requested: Path, media: EncodedMedia) -> Path:
    path = _output_path(requested, media)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(media.data)
    logging.info("Saved %s (%s bytes, %s frames)", path, len(media.data), media.frame_count)
    return path


class _ProgressPrinter:
    """Log progress every 10 percent."""

    def __init__(self, label: str) -> None:
        self.label = label
        self._last = -10

    def __call__(self, percent: int) -> None:
        if percent >= self._last + 10 or percent == 100:
            self._last = percent
            logging.info("%s: %s%%", self.label, percent)


def render_image(studio: HologramStudio, args: argparse.Namespace) -> int:
    media = studio.export_image(args.input)
    _write_media(args.output, media)
    return 0


def export_faces(studio: HologramStudio, args: argparse.Namespace) -> int:
    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = args.input.stem
    for name, face in zip(FACE_NAMES, studio.extract_faces(args.input)):
        path = output_dir / f"{stem}_{name}.png"
        media = studio.encoder.encode_still(face)
        path.write_bytes(media.data)
        logging.info("Saved %s face to %s", name, path)
    return 0


def export_fade(studio: HologramStudio, args: argparse.Namespace) -> int:
    output_format = args.format
    if output_format is None:
        output_format = OutputFormat.GIF if args.output.suffix.lower() == ".gif" else OutputFormat.VIDEO

    spec = studio.animation_spec(
        duration_seconds=args.duration,
        fps=args.fps,
        direction=args.direction,
        loop=False if args.no_loop else None,
    )
    animation = studio.generate_fade(args.image_a, args.image_b, spec)
    media = studio.export_animation(
        animation,
        output_format,
        _ProgressPrinter(f"{OutputFormat(output_format).value.upper()} export"),
    )
    _write_media(args.output, media)
    return 0


def convert_video(studio: HologramStudio, args: argparse.Namespace) -> int:
    result = studio.convert_video(
        args.input,
        _ProgressPrinter("Video conversion"),
        realtime=False if args.fast else None,
    )
    _write_media(args.output, result.media)
    if result.is_fallback:
        logging.warning("Saved a still hologram frame only: %s", result.fallback_reason)
    return 0


def _play(
    studio: HologramStudio,
    source: FrameSource,
    surface: Optional[PreviewSurface],
    seconds: Optional[float],
    **overrides,
) -> LoopHandle:
    """Run a preview on ``surface`` and pump it here until it ends or ``seconds`` pass."""
    handle = studio.start_preview(source, surface, **overrides)
    try:
        finished = pump_until_done(handle, seconds)
    except KeyboardInterrupt:
        logging.info("Preview interrupted")
        finished = False
    finally:
        handle.stop()

    logging.info("Preview drew %s frames", handle.frames_drawn)
    if not finished:
        logging.debug("Preview stopped before the source ended")
    return handle


def run_preview(studio: HologramStudio, args: argparse.Namespace) -> int:
    if args.camera is not None:
        source = VideoCaptureSource(args.camera, logger=studio.logger)
    elif args.input is None:
        logging.error("Provide an input file or --camera for the preview.")
        return 2
    elif args.input.suffix.lower() in IMAGE_SUFFIXES:
        source = StillSource(load_raster(args.input))
    else:
        source = VideoCaptureSource(args.input, logger=studio.logger)

    surface = MemorySurface() if args.headless else studio.preview_window(args.fullscreen or None)
    try:
        handle = _play(
            studio,
            source,
            surface,
            args.seconds,
            max_width=args.max_width,
            loop=False if args.no_loop else None,
            draw_guides=False if args.no_guides else None,
        )
    finally:
        source.release()
        surface.close()

    if handle.error is not None:
        raise handle.error
    return 0


def run_viewer(studio: HologramStudio, args: argparse.Namespace) -> int:
    """Fullscreen looping hologram for placing the pyramid on the screen.

    Videos that stop playing part way fall back to a still hologram frame.
    """
    fallback: Optional[Raster] = None
    if args.input.suffix.lower() in IMAGE_SUFFIXES:
        source: FrameSource = StillSource(load_raster(args.input))
    else:
        source = VideoCaptureSource(args.input, logger=studio.logger)
        try:
            fallback = read_representative_frame(source)
        except DecodeError:
            source.release()
            raise
        source.rewind()

    surface = MemorySurface() if args.headless else studio.preview_window(fullscreen=True)
    viewer_options = {"loop": True, "draw_guides": False, "max_width": args.max_width}
    try:
        handle = _play(studio, source, surface, args.seconds, **viewer_options)
        if handle.error is not None and fallback is not None:
            logging.warning(
                "Live playback of %s failed (%s); showing a still hologram frame",
                args.input,
                handle.error,
            )
            source.release()
            source = StillSource(fallback)
            handle = _play(studio, source, surface, args.seconds, **viewer_options)
    finally:
        source.release()
        surface.close()

    if handle.error is not None:
        raise handle.error
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render images and videos as four-face hologram pyramid media.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a JSON settings file (default: HOLOGRAM_* environment variables).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    image_parser = subparsers.add_parser("image", help="Format a still image as a hologram PNG.")
    image_parser.add_argument("input", type=Path, help="Source image file.")
    image_parser.add_argument("-o", "--output", type=Path, required=True, help="Output PNG path.")

    faces_parser = subparsers.add_parser(
        "faces",
        help="Export the four rotated panel images separately.",
    )
    faces_parser.add_argument("input", type=Path, help="Source image file.")
    faces_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("faces"),
        help="Directory for the <name>_<side>.png files (default: ./faces).",
    )

    fade_parser = subparsers.add_parser(
        "fade",
        help="Cross-fade between two images and export the hologram animation.",
    )
    fade_parser.add_argument("image_a", type=Path, help="Image shown at the start of the fade.")
    fade_parser.add_argument("image_b", type=Path, help="Image shown at the end of the fade.")
    fade_parser.add_argument("-o", "--output", type=Path, required=True, help="Output file.")
    fade_parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in OutputFormat],
        help="Output format (default: gif for a .gif output, video otherwise).",
    )
    fade_parser.add_argument("--duration", type=float, help="Fade duration in seconds.")
    fade_parser.add_argument("--fps", type=int, help="Frames per second.")
    fade_parser.add_argument(
        "--direction",
        choices=[direction.value for direction in Direction],
        help="Playback order of the fade.",
    )
    fade_parser.add_argument(
        "--no-loop",
        action="store_true",
        help="Play GIF output once instead of looping.",
    )

    video_parser = subparsers.add_parser(
        "video",
        help="Convert a video into hologram format (falls back to a still PNG).",
    )
    video_parser.add_argument("input", type=Path, help="Source video file.")
    video_parser.add_argument("-o", "--output", type=Path, required=True, help="Output file.")
    video_parser.add_argument(
        "--fast",
        action="store_true",
        help="Encode as fast as possible instead of at the source frame rate.",
    )

    preview_parser = subparsers.add_parser("preview", help="Show a live hologram preview window.")
    preview_parser.add_argument("input", type=Path, nargs="?", help="Image or video file.")
    preview_parser.add_argument("--camera", type=int, help="Camera index to preview instead of a file.")
    preview_parser.add_argument("--max-width", type=int, help="Maximum preview width in pixels.")
    preview_parser.add_argument(
        "--seconds",
        type=float,
        help="Stop the preview after this many seconds (default: until interrupted).",
    )
    preview_parser.add_argument("--no-loop", action="store_true", help="Stop when a video ends.")
    preview_parser.add_argument("--no-guides", action="store_true", help="Hide the centre guides.")
    preview_parser.add_argument(
        "--headless",
        action="store_true",
        help="Render without opening a window.",
    )
    preview_parser.add_argument(
        "--fullscreen",
        action="store_true",
        help="Open the preview window fullscreen.",
    )

    view_parser = subparsers.add_parser(
        "view",
        help="Play an image or video fullscreen and looping, ready for the pyramid.",
    )
    view_parser.add_argument("input", type=Path, help="Image or video file.")
    view_parser.add_argument("--max-width", type=int, help="Maximum hologram width in pixels.")
    view_parser.add_argument(
        "--seconds",
        type=float,
        help="Close the viewer after this many seconds (default: until q or Esc).",
    )
    view_parser.add_argument(
        "--headless",
        action="store_true",
        help="Render without opening a window.",
    )

    return parser


COMMANDS = {
    "image": render_image,
    "faces": export_faces,
    "fade": export_fade,
    "video": convert_video,
    "preview": run_preview,
    "view": run_viewer,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.error(f"Unhandled command: {args.command}")

    try:
        studio = HologramStudio(args.config, logger=logging.getLogger("hologram_pyramid"))
        configure_logging(verbose=args.verbose, log_file=studio.settings.log_file)
        return handler(studio, args)
    except HologramError as exc:
        logging.error("%s: %s", exc.kind, exc)
        return 1
    except ValueError as exc:
        logging.error("Invalid input: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
