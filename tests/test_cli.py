import logging
import sys
from pathlib import Path
from unittest.mock import patch

import cv2
import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import hologram_pyramid.cli as cli_module  # noqa: E402
from hologram_pyramid.app import HologramStudio  # noqa: E402
from hologram_pyramid.cli import main  # noqa: E402
from hologram_pyramid.config import Settings  # noqa: E402
from hologram_pyramid.models import (  # noqa: E402
    AnimationSpec,
    Direction,
    EncodedMedia,
    HologramResult,
    OutputFormat,
    ResultKind,
)
from hologram_pyramid.preview import MemorySurface  # noqa: E402
from hologram_pyramid.resources import StaticCapabilityProbe  # noqa: E402


def build_studio() -> HologramStudio:
    return HologramStudio(
        settings=Settings(),
        probe=StaticCapabilityProbe(memory=16.0),
        logger=logging.getLogger("cli-tests"),
    )


def write_image(path: Path, color, size=(40, 30)) -> Path:
    width, height = size
    raster = np.zeros((height, width, 3), dtype=np.uint8)
    raster[...] = color
    cv2.imwrite(str(path), raster)
    return path


def test_studio_formats_and_exports_still(tmp_path):
    studio = build_studio()
    image = write_image(tmp_path / "a.png", (0, 0, 255))

    hologram = studio.format_image(image)
    media = studio.export_image(image.read_bytes())

    assert hologram.shape == (60, 60, 3)
    assert media.mime_type == "image/png"
    decoded = cv2.imdecode(np.frombuffer(media.data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert np.array_equal(decoded, hologram)


def test_studio_fade_to_gif_and_preview(tmp_path):
    studio = build_studio()
    image_a = write_image(tmp_path / "a.png", (255, 0, 0))
    image_b = write_image(tmp_path / "b.png", (0, 255, 0))
    spec = AnimationSpec(duration_seconds=0.5, fps=8, direction=Direction.PINGPONG, loop=False)

    animation = studio.generate_fade(image_a, image_b, spec)
    media = studio.export_animation(animation, OutputFormat.GIF)

    assert len(animation.frames) == 6
    assert animation.fps == 8
    assert media.data.startswith(b"GIF8")

    surface = MemorySurface()
    handle = studio.preview_animation(animation, surface)
    assert handle.wait(timeout=5)
    assert surface.frames_presented == 6


def test_cli_image_and_faces(tmp_path):
    image = write_image(tmp_path / "photo.png", (10, 20, 30))
    output = tmp_path / "out" / "hologram.jpg"

    assert main(["image", str(image), "-o", str(output)]) == 0
    written = tmp_path / "out" / "hologram.png"
    assert written.exists()
    assert cv2.imread(str(written)).shape == (60, 60, 3)

    faces_dir = tmp_path / "faces"
    assert main(["faces", str(image), "--output-dir", str(faces_dir)]) == 0
    names = sorted(path.name for path in faces_dir.iterdir())
    assert names == ["photo_bottom.png", "photo_left.png", "photo_right.png", "photo_top.png"]


def test_cli_fade_gif(tmp_path):
    image_a = write_image(tmp_path / "a.png", (255, 0, 0))
    image_b = write_image(tmp_path / "b.png", (0, 0, 255))
    output = tmp_path / "fade.gif"

    code = main(
        [
            "fade",
            str(image_a),
            str(image_b),
            "-o",
            str(output),
            "--duration",
            "0.5",
            "--fps",
            "8",
            "--direction",
            "forward",
        ]
    )

    assert code == 0
    assert output.read_bytes().startswith(b"GIF8")


def test_cli_reports_decode_errors(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"nope")

    assert main(["image", str(broken), "-o", str(tmp_path / "out.png")]) == 1
    assert not (tmp_path / "out.png").exists()


class FlippingProbe:
    """Reports a touch-first mobile device on every other check."""

    def __init__(self):
        self.calls = 0

    def touch_primary_mobile(self):
        self.calls += 1
        return self.calls % 2 == 1

    def memory_gb(self):
        return 16.0


def test_generate_fade_takes_one_budget_snapshot(tmp_path):
    studio = HologramStudio(
        settings=Settings(),
        probe=FlippingProbe(),
        logger=logging.getLogger("cli-tests"),
    )
    image_a = write_image(tmp_path / "a.png", (255, 0, 0))
    image_b = write_image(tmp_path / "b.png", (0, 0, 255))
    spec = AnimationSpec(duration_seconds=10, fps=30, direction=Direction.FORWARD, loop=False)

    animation = studio.generate_fade(image_a, image_b, spec)

    assert studio.policy.probe.calls == 1
    assert animation.fps == animation.plan.fps == 16
    assert len(animation.frames) == animation.plan.total_frames == 48


def test_cli_headless_preview_of_an_image(tmp_path):
    image = write_image(tmp_path / "photo.png", (10, 20, 30))

    assert main(["preview", str(image), "--headless", "--seconds", "0.2"]) == 0


def test_cli_view_plays_an_image_headless(tmp_path):
    image = write_image(tmp_path / "photo.png", (10, 20, 30))
    surfaces = []

    def make_surface():
        surface = MemorySurface()
        surfaces.append(surface)
        return surface

    with patch.object(cli_module, "MemorySurface", make_surface):
        assert main(["view", str(image), "--headless", "--seconds", "0.2"]) == 0

    (surface,) = surfaces
    assert surface.frames_presented >= 1
    assert surface.closed
    assert surface.last_frame.shape == (60, 60, 3)


class BrokenStreamVideo:
    """Decodes a couple of frames, then fails like a corrupt stream."""

    fps = None

    def __init__(self, target, logger=None):
        self.target = target
        self.reads = 0
        self.paused = False
        self.released = False

    def seek_seconds(self, seconds):
        pass

    def read(self):
        self.reads += 1
        if self.reads > 2:
            raise RuntimeError("corrupt packet")
        frame = np.zeros((30, 40, 3), dtype=np.uint8)
        frame[...] = (0, 0, 200)
        return frame

    def rewind(self):
        self.paused = False

    def pause(self):
        self.paused = True

    def release(self):
        self.released = True


def test_cli_view_falls_back_to_a_still_frame_when_playback_fails(tmp_path):
    clip = tmp_path / "clip.avi"
    clip.write_bytes(b"placeholder")
    videos = []
    surfaces = []

    def open_video(target, logger=None):
        video = BrokenStreamVideo(target, logger)
        videos.append(video)
        return video

    def make_surface():
        surface = MemorySurface()
        surfaces.append(surface)
        return surface

    with patch.object(cli_module, "VideoCaptureSource", open_video):
        with patch.object(cli_module, "MemorySurface", make_surface):
            code = main(["view", str(clip), "--headless", "--seconds", "0.3"])

    assert code == 0
    (video,) = videos
    assert video.released
    (surface,) = surfaces
    assert surface.closed
    assert surface.frames_presented >= 2
    assert surface.last_frame[..., 2].max() > 0


def test_cli_video_fast_turns_off_real_time_pacing(tmp_path):
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"placeholder")
    result = HologramResult(
        kind=ResultKind.VIDEO,
        media=EncodedMedia(data=b"video", mime_type="video/mp4", extension="mp4", frame_count=1, fps=24.0),
    )

    with patch.object(HologramStudio, "convert_video", return_value=result) as convert:
        assert main(["video", str(clip), "-o", str(tmp_path / "out.mp4"), "--fast"]) == 0
        assert convert.call_args.kwargs["realtime"] is False

        assert main(["video", str(clip), "-o", str(tmp_path / "paced.mp4")]) == 0
        assert convert.call_args.kwargs["realtime"] is None

    assert (tmp_path / "out.mp4").read_bytes() == b"video"
