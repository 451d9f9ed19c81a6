"""Frame-sequence encoding to video (ffmpeg) and GIF (Pillow)."""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
import tempfile
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from time import monotonic
from typing import Any, Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from hologram_pyramid.compositing import FrameCompositor, cover_fit, downscale_to_fit
from hologram_pyramid.config import EncoderSettings
from hologram_pyramid.errors import (
    DecodeError,
    EncoderBusy,
    EncoderUnavailable,
    EncoderUnsupported,
    EncodingCancelled,
    EncodingFailed,
    NoFrames,
)
from hologram_pyramid.geometry import OVERLAP_MARGIN, layout_for_raster
from hologram_pyramid.models import (
    EncodedMedia,
    HologramResult,
    OutputFormat,
    Raster,
    ResultKind,
)
from hologram_pyramid.progress import ProgressCallback, ProgressTracker
from hologram_pyramid.resources import ResourcePolicy
from hologram_pyramid.sources import (
    TemporaryVideoFile,
    VideoCaptureSource,
    encode_png,
    read_representative_frame,
)

DEFAULT_SOURCE_FPS = 30.0
MIN_GIF_FRAME_DELAY_MS = 20


@dataclass(frozen=True)
class VideoCodec:
    """An ffmpeg encoder and the container it is muxed into."""

    name: str
    encoder: str
    container: str
    extension: str
    mime_type: str
    args: Tuple[str, ...]


VIDEO_CODECS = {
    "vp9": VideoCodec(
        name="vp9",
        encoder="libvpx-vp9",
        container="webm",
        extension="webm",
        mime_type="video/webm",
        args=("-b:v", "0", "-crf", "{quality}", "-deadline", "realtime", "-cpu-used", "8"),
    ),
    "vp8": VideoCodec(
        name="vp8",
        encoder="libvpx",
        container="webm",
        extension="webm",
        mime_type="video/webm",
        args=("-b:v", "2M", "-crf", "{quality}", "-deadline", "realtime", "-cpu-used", "8"),
    ),
    "h264": VideoCodec(
        name="h264",
        encoder="libx264",
        container="mp4",
        extension="mp4",
        mime_type="video/mp4",
        args=("-crf", "{quality}", "-preset", "veryfast", "-movflags", "+faststart"),
    ),
    "mpeg4": VideoCodec(
        name="mpeg4",
        encoder="mpeg4",
        container="mp4",
        extension="mp4",
        mime_type="video/mp4",
        args=("-q:v", "3", "-movflags", "+faststart"),
    ),
}


def gif_frame_delay_ms(fps: float) -> int:
    return max(MIN_GIF_FRAME_DELAY_MS, int(round(1000.0 / max(1.0, float(fps)))))


def list_ffmpeg_encoders(ffmpeg_binary: str) -> List[str]:
    """Names of the video encoders compiled into ``ffmpeg_binary``."""
    result = subprocess.run(
        [ffmpeg_binary, "-hide_banner", "-encoders"],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        return []

    encoders: List[str] = []
    in_table = False
    for line in result.stdout.splitlines():
        parts = line.split()
        if not in_table:
            # The capability legend ends at a "------" separator.
            in_table = bool(parts) and parts[0].startswith("---")
            continue
        if len(parts) >= 2 and parts[0].startswith("V"):
            encoders.append(parts[1])
    return encoders


def negotiate_video_codec(
    ffmpeg_binary: str,
    preferred: Sequence[str],
) -> VideoCodec:
    """Pick the first preferred codec the local ffmpeg can encode."""
    if shutil.which(ffmpeg_binary) is None:
        raise EncoderUnsupported(
            f"{ffmpeg_binary} not found on PATH; video export needs ffmpeg with VP9, VP8 or H.264"
        )

    available = set(list_ffmpeg_encoders(ffmpeg_binary))
    for name in preferred:
        codec = VIDEO_CODECS.get(name)
        if codec is not None and codec.encoder in available:
            return codec
    raise EncoderUnsupported(
        f"None of the video codecs {', '.join(preferred)} are supported by {ffmpeg_binary}"
    )


class FramePacer:
    """Fixed-interval pacing loop independent of display refresh.

    With ``realtime`` disabled every slot is granted immediately and the
    frame timing lives only in the encoded stream's frame rate.
    """

    def __init__(
        self,
        fps: float,
        *,
        realtime: bool,
        cancel_event: threading.Event,
    ) -> None:
        self.interval = 1.0 / max(1.0, float(fps))
        self.realtime = realtime
        self.cancel_event = cancel_event
        self._next_slot: Optional[float] = None

    def wait_next(self) -> None:
        if self.cancel_event.is_set():
            raise EncodingCancelled("Encoding cancelled")
        if not self.realtime:
            return
        now = monotonic()
        if self._next_slot is None:
            self._next_slot = now
        delay = self._next_slot - now
        if delay > 0 and self.cancel_event.wait(delay):
            raise EncodingCancelled("Encoding cancelled")
        self._next_slot = max(self._next_slot, now) + self.interval


class VideoRecorder:
    """Streams PNG frames into an ffmpeg process and collects the container bytes."""

    def __init__(
        self,
        codec: VideoCodec,
        fps: float,
        *,
        ffmpeg_binary: str,
        quality: int,
        logger: logging.Logger,
    ) -> None:
        self.codec = codec
        self.fps = fps
        self.ffmpeg_binary = ffmpeg_binary
        self.quality = quality
        self.logger = logger
        self.process: Optional[subprocess.Popen] = None
        self._tempdir: Optional[tempfile.TemporaryDirectory] = None
        self._output_path: Optional[Path] = None
        self._stderr_handle: Any = None

    def _command(self) -> List[str]:
        assert self._output_path is not None
        codec_args = [arg.format(quality=self.quality) for arg in self.codec.args]
        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-loglevel",
            "error",
            "-y",
            "-f",
            "image2pipe",
            "-vcodec",
            "png",
            "-r",
            f"{self.fps:g}",
            "-i",
            "-",
            "-vf",
            "pad=ceil(iw/2)*2:ceil(ih/2)*2",
            "-c:v",
            self.codec.encoder,
            *codec_args,
            "-pix_fmt",
            "yuv420p",
            "-f",
            self.codec.container,
            str(self._output_path),
        ]

    def start(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory(prefix="hologram_enc_")
        workdir = Path(self._tempdir.name)
        self._output_path = workdir / f"output_{uuid.uuid4().hex}.{self.codec.extension}"
        self._stderr_handle = (workdir / "ffmpeg.log").open("w+b")
        cmd = self._command()
        self.logger.debug("Starting recorder: %s", " ".join(cmd))
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=self._stderr_handle,
            )
        except OSError as exc:
            self._cleanup()
            raise EncoderUnsupported(f"Could not start {self.ffmpeg_binary}: {exc}") from exc

    def write(self, frame_bytes: bytes) -> None:
        if self.process is None or self.process.stdin is None:
            raise RuntimeError("Recorder is not running")
        try:
            self.process.stdin.write(frame_bytes)
        except BrokenPipeError as exc:
            raise EncodingFailed(
                f"{self.ffmpeg_binary} stopped accepting frames",
                stderr=self._read_stderr(),
            ) from exc

    def stop(self) -> bytes:
        """Close the input, wait for ffmpeg to finalise and return the output."""
        if self.process is None:
            raise RuntimeError("Recorder was never started")
        try:
            if self.process.stdin is not None:
                try:
                    self.process.stdin.close()
                except OSError:
                    pass
            return_code = self.process.wait()
            if return_code != 0:
                stderr_bytes = self._read_stderr()
                raise EncodingFailed(
                    f"{self.ffmpeg_binary} exited with status {return_code}",
                    stderr=stderr_bytes,
                ) from subprocess.CalledProcessError(return_code, self._command(), stderr=stderr_bytes)
            assert self._output_path is not None
            return self._output_path.read_bytes()
        finally:
            self._cleanup()

    def abort(self) -> None:
        """Kill ffmpeg and discard any partial output."""
        if self.process is not None and self.process.poll() is None:
            self.process.kill()
            if self.process.stdin is not None:
                try:
                    self.process.stdin.close()
                except OSError:
                    pass
            self.process.wait()
        self._cleanup()

    def _read_stderr(self) -> bytes:
        if self._stderr_handle is None:
            return b""
        self._stderr_handle.flush()
        self._stderr_handle.seek(0)
        return self._stderr_handle.read()

    def _cleanup(self) -> None:
        if self._stderr_handle is not None:
            self._stderr_handle.close()
            self._stderr_handle = None
        if self._tempdir is not None:
            self._tempdir.cleanup()
            self._tempdir = None


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class EncodingJob:
    """One export request and its single completion."""

    job_id: str
    format: OutputFormat
    fps: float
    frame_count: int
    state: JobState = JobState.IDLE
    progress_percent: int = 0
    error: Optional[BaseException] = None
    future: Future = field(default_factory=Future, repr=False)
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    tracker: Optional[ProgressTracker] = field(default=None, repr=False)
    _guard: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)
    _committed: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        return self.state in (JobState.IDLE, JobState.RUNNING)

    def cancel(self) -> bool:
        """Request cancellation; returns ``False`` once the result is committed."""
        with self._guard:
            if self._committed or not self.is_active:
                return False
            self.cancel_event.set()
        if self.tracker is not None:
            self.tracker.close()
        return True

    def result(self, timeout: Optional[float] = None) -> Any:
        return self.future.result(timeout)

    def _commit(self) -> bool:
        """Close the cancellation window; ``False`` if a cancel got there first."""
        with self._guard:
            if self.cancel_event.is_set():
                return False
            self._committed = True
            return True


@dataclass(frozen=True)
class SourceVideoOptions:
    """Options for :meth:`Encoder.process_source_video_to_hologram`.

    ``realtime`` of ``None`` follows ``EncoderSettings.source_realtime``.
    """

    fps: Optional[float] = None
    suffix: str = ".mp4"
    realtime: Optional[bool] = None


class Encoder:
    """Encode hologram frame sequences, one running job at a time."""

    def __init__(
        self,
        settings: Optional[EncoderSettings] = None,
        *,
        compositor: Optional[FrameCompositor] = None,
        policy: Optional[ResourcePolicy] = None,
        overlap_margin: float = OVERLAP_MARGIN,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or EncoderSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.compositor = compositor or FrameCompositor(logger=self.logger)
        self.policy = policy or ResourcePolicy(logger=self.logger)
        self.overlap_margin = overlap_margin
        self._lock = threading.Lock()
        self._active_job: Optional[EncodingJob] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._codec: Optional[VideoCodec] = None

    # ------------------------------------------------------------------
    # Capability checks
    # ------------------------------------------------------------------

    def negotiate_codec(self) -> VideoCodec:
        if self._codec is None:
            self._codec = negotiate_video_codec(
                self.settings.ffmpeg_binary,
                self.settings.video_codecs,
            )
            self.logger.info(
                "Using %s (%s/%s) for video export",
                self._codec.encoder,
                self._codec.name,
                self._codec.container,
            )
        return self._codec

    # ------------------------------------------------------------------
    # Job management
    # ------------------------------------------------------------------

    @property
    def active_job(self) -> Optional[EncodingJob]:
        with self._lock:
            return self._active_job

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _submit(
        self,
        fmt: OutputFormat,
        fps: float,
        frame_count: int,
        work: Callable[[EncodingJob, ProgressTracker], Any],
        on_progress: Optional[ProgressCallback],
        on_complete: Optional[Callable[[Any], None]],
        on_cancel: Optional[Callable[[], None]],
        label: str,
    ) -> EncodingJob:
        job = EncodingJob(
            job_id=uuid.uuid4().hex,
            format=fmt,
            fps=fps,
            frame_count=frame_count,
        )

        def forward_progress(percent: int) -> None:
            job.progress_percent = percent
            if on_progress is not None:
                on_progress(percent)

        job.tracker = ProgressTracker(
            frame_count,
            forward_progress,
            logger=self.logger,
            label=f"{label} job {job.job_id[:8]}",
        )

        with self._lock:
            if self.settings.busy_policy == "queue":
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1,
                        thread_name_prefix="hologram-encoder",
                    )
                self._executor.submit(self._run_job, job, work, on_complete, on_cancel)
            else:
                if self._active_job is not None and self._active_job.is_active:
                    raise EncoderBusy(
                        f"Encoding job {self._active_job.job_id} is still running"
                    )
                self._active_job = job
                thread = threading.Thread(
                    target=self._run_job,
                    args=(job, work, on_complete, on_cancel),
                    name=f"hologram-encoder-{job.job_id[:8]}",
                    daemon=True,
                )
                thread.start()
        return job

    def _run_job(
        self,
        job: EncodingJob,
        work: Callable[[EncodingJob, ProgressTracker], Any],
        on_complete: Optional[Callable[[Any], None]],
        on_cancel: Optional[Callable[[], None]],
    ) -> None:
        with self._lock:
            self._active_job = job
            job.state = JobState.RUNNING
        assert job.tracker is not None

        try:
            if job.cancel_event.is_set():
                raise EncodingCancelled("Encoding cancelled before it started")
            result = work(job, job.tracker)
            if not job._commit():
                raise EncodingCancelled("Encoding cancelled")
        except EncodingCancelled as exc:
            job.tracker.close()
            self._finish(job, JobState.CANCELLED, error=exc)
            self.logger.info("Encoding job %s cancelled", job.job_id)
            if on_cancel is not None:
                on_cancel()
            job.future.set_exception(exc)
            return
        except Exception as exc:
            self._finish(job, JobState.FAILED, error=exc)
            self.logger.exception("Encoding job %s failed: %s", job.job_id, exc)
            job.future.set_exception(exc)
            return

        job.tracker.finish()
        self._finish(job, JobState.DONE)
        if on_complete is not None:
            on_complete(result)
        job.future.set_result(result)

    def _finish(
        self,
        job: EncodingJob,
        state: JobState,
        *,
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            job.state = state
            job.error = error
            if self._active_job is job:
                self._active_job = None

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def submit_video(
        self,
        frames: Sequence[Raster],
        fps: float,
        on_progress: Optional[ProgressCallback] = None,
        *,
        on_complete: Optional[Callable[[EncodedMedia], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> EncodingJob:
        frames = list(frames)
        if not frames:
            raise NoFrames("No frames to encode as video")

        def work(job: EncodingJob, tracker: ProgressTracker) -> EncodedMedia:
            return self._record_frames(job, frames, fps, tracker)

        return self._submit(
            OutputFormat.VIDEO,
            fps,
            len(frames),
            work,
            on_progress,
            on_complete,
            on_cancel,
            "Video encoding",
        )

    def encode_to_video(
        self,
        frames: Sequence[Raster],
        fps: float,
        on_progress: Optional[ProgressCallback] = None,
    ) -> EncodedMedia:
        return self.submit_video(frames, fps, on_progress).result()

    def _record_frames(
        self,
        job: EncodingJob,
        frames: Sequence[Raster],
        fps: float,
        tracker: ProgressTracker,
    ) -> EncodedMedia:
        codec = self.negotiate_codec()
        height, width = frames[0].shape[:2]
        surface = np.zeros((height, width, 3), dtype=np.uint8)
        pacer = FramePacer(
            fps,
            realtime=self.settings.realtime_pacing,
            cancel_event=job.cancel_event,
        )
        recorder = VideoRecorder(
            codec,
            fps,
            ffmpeg_binary=self.settings.ffmpeg_binary,
            quality=self.settings.video_quality,
            logger=self.logger,
        )
        recorder.start()
        try:
            for index, frame in enumerate(frames, start=1):
                pacer.wait_next()
                if frame.shape[:2] == (height, width):
                    surface[...] = frame[..., :3]
                else:
                    surface[...] = cover_fit(frame, width, height)
                recorder.write(encode_png(surface))
                tracker.step(index)
            pacer.wait_next()
            data = recorder.stop()
        except BaseException:
            recorder.abort()
            raise

        self.logger.info(
            "Encoded %s frames at %s fps into %s bytes of %s",
            len(frames),
            fps,
            len(data),
            codec.container,
        )
        return EncodedMedia(
            data=data,
            mime_type=codec.mime_type,
            extension=codec.extension,
            frame_count=len(frames),
            fps=float(fps),
        )

    # ------------------------------------------------------------------
    # GIF
    # ------------------------------------------------------------------

    def submit_gif(
        self,
        frames: Sequence[Raster],
        fps: float,
        on_progress: Optional[ProgressCallback] = None,
        *,
        loop: bool = True,
        on_complete: Optional[Callable[[EncodedMedia], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> EncodingJob:
        frames = list(frames)
        if not frames:
            raise NoFrames("No frames to encode as GIF")

        def work(job: EncodingJob, tracker: ProgressTracker) -> EncodedMedia:
            return self._write_gif(job, frames, fps, loop, tracker)

        return self._submit(
            OutputFormat.GIF,
            fps,
            len(frames),
            work,
            on_progress,
            on_complete,
            on_cancel,
            "GIF encoding",
        )

    def encode_to_gif(
        self,
        frames: Sequence[Raster],
        fps: float,
        on_progress: Optional[ProgressCallback] = None,
        *,
        loop: bool = True,
    ) -> EncodedMedia:
        return self.submit_gif(frames, fps, on_progress, loop=loop).result()

    def _write_gif(
        self,
        job: EncodingJob,
        frames: Sequence[Raster],
        fps: float,
        loop: bool,
        tracker: ProgressTracker,
    ) -> EncodedMedia:
        try:
            from PIL import Image
        except ImportError as exc:
            raise EncoderUnavailable("Pillow is required for GIF export") from exc

        total = len(frames)
        delay = gif_frame_delay_ms(fps)

        def to_image(frame: Raster) -> "Image.Image":
            return Image.fromarray(cv2.cvtColor(frame[..., :3], cv2.COLOR_BGR2RGB))

        def remaining_images():
            for index, frame in enumerate(frames[1:], start=2):
                if job.cancel_event.is_set():
                    raise EncodingCancelled("Encoding cancelled")
                yield to_image(frame)
                # Pillow still has to write the palette data after the last frame.
                tracker.report_percent(99.0 * index / total)

        first = to_image(frames[0])
        tracker.report_percent(99.0 / total)
        output = io.BytesIO()
        save_kwargs = {
            "format": "GIF",
            "save_all": True,
            "append_images": remaining_images(),
            "duration": delay,
            "optimize": False,
        }
        if loop:
            save_kwargs["loop"] = 0
        first.save(output, **save_kwargs)

        if job.cancel_event.is_set():
            raise EncodingCancelled("Encoding cancelled")

        data = output.getvalue()
        self.logger.info(
            "Encoded %s frames into %s byte GIF (%s ms per frame)",
            total,
            len(data),
            delay,
        )
        return EncodedMedia(
            data=data,
            mime_type="image/gif",
            extension="gif",
            frame_count=total,
            fps=float(fps),
        )

    # ------------------------------------------------------------------
    # Still export
    # ------------------------------------------------------------------

    @staticmethod
    def encode_still(raster: Raster) -> EncodedMedia:
        return EncodedMedia(
            data=encode_png(raster),
            mime_type="image/png",
            extension="png",
            frame_count=1,
        )

    # ------------------------------------------------------------------
    # Source video conversion
    # ------------------------------------------------------------------

    def submit_source_video(
        self,
        video_bytes: bytes,
        options: Optional[SourceVideoOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        *,
        on_complete: Optional[Callable[[HologramResult], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> EncodingJob:
        options = options or SourceVideoOptions()
        if not video_bytes:
            raise DecodeError("Video data is empty")

        def work(job: EncodingJob, tracker: ProgressTracker) -> HologramResult:
            return self._convert_source_video(job, video_bytes, options, tracker)

        return self._submit(
            OutputFormat.VIDEO,
            options.fps or DEFAULT_SOURCE_FPS,
            1,
            work,
            on_progress,
            on_complete,
            on_cancel,
            "Source video conversion",
        )

    def process_source_video_to_hologram(
        self,
        video_bytes: bytes,
        options: Optional[SourceVideoOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> HologramResult:
        return self.submit_source_video(video_bytes, options, on_progress).result()

    def _convert_source_video(
        self,
        job: EncodingJob,
        video_bytes: bytes,
        options: SourceVideoOptions,
        tracker: ProgressTracker,
    ) -> HologramResult:
        budget = self.policy.snapshot()
        with TemporaryVideoFile(video_bytes, suffix=options.suffix) as path:
            source = VideoCaptureSource(path, logger=self.logger)
            try:
                try:
                    codec = self.negotiate_codec()
                except EncoderUnsupported as exc:
                    return self._still_fallback(source, budget.max_raster_dimension, str(exc))

                fps = options.fps or source.fps or DEFAULT_SOURCE_FPS
                if budget.max_fps is not None:
                    fps = min(fps, budget.max_fps)
                frame_total = int(source.capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
                tracker.reset_total(frame_total)

                frame = source.read()
                if frame is None:
                    raise DecodeError("Source video contains no decodable frames")
                frame = downscale_to_fit(frame, budget.max_raster_dimension)
                layout = layout_for_raster(frame, overlap_margin=self.overlap_margin)
                buffer = np.zeros((layout.canvas_size, layout.canvas_size, 3), dtype=np.uint8)

                realtime = (
                    self.settings.source_realtime if options.realtime is None else options.realtime
                )
                pacer = FramePacer(fps, realtime=realtime, cancel_event=job.cancel_event)
                recorder = VideoRecorder(
                    codec,
                    fps,
                    ffmpeg_binary=self.settings.ffmpeg_binary,
                    quality=self.settings.video_quality,
                    logger=self.logger,
                )
                try:
                    recorder.start()
                except EncoderUnsupported as exc:
                    source.rewind()
                    return self._still_fallback(source, budget.max_raster_dimension, str(exc))

                count = 0
                try:
                    while frame is not None:
                        pacer.wait_next()
                        self.compositor.render_into(buffer, frame, layout)
                        recorder.write(encode_png(buffer))
                        count += 1
                        tracker.step(min(count, tracker.total))
                        frame = source.read()
                        if frame is not None:
                            frame = downscale_to_fit(frame, budget.max_raster_dimension)
                    pacer.wait_next()
                    data = recorder.stop()
                except BaseException:
                    recorder.abort()
                    raise
            finally:
                source.release()

        self.logger.info(
            "Converted source video into %s hologram frames (%sx%s) at %s fps",
            count,
            layout.canvas_size,
            layout.canvas_size,
            fps,
        )
        media = EncodedMedia(
            data=data,
            mime_type=codec.mime_type,
            extension=codec.extension,
            frame_count=count,
            fps=float(fps),
        )
        return HologramResult(kind=ResultKind.VIDEO, media=media)

    def _still_fallback(
        self,
        source: VideoCaptureSource,
        max_dimension: int,
        reason: str,
    ) -> HologramResult:
        self.logger.warning(
            "Video recording unavailable (%s); exporting a single hologram frame instead",
            reason,
        )
        frame = downscale_to_fit(read_representative_frame(source), max_dimension)
        layout = layout_for_raster(frame, overlap_margin=self.overlap_margin)
        still = self.compositor.composite(frame, layout)
        return HologramResult(
            kind=ResultKind.STILL_IMAGE,
            media=self.encode_still(still),
            fallback_reason=reason,
        )


__all__ = [
    "Encoder",
    "EncodingJob",
    "FramePacer",
    "JobState",
    "SourceVideoOptions",
    "VIDEO_CODECS",
    "VideoCodec",
    "VideoRecorder",
    "gif_frame_delay_ms",
    "list_ffmpeg_encoders",
    "negotiate_video_codec",
]
