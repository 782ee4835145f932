"""
Functions to gather video metadata, pick an encoder and build ffmpeg commands.

This module provides functionality to read a video's dimensions and duration
using ffprobe, to find the best available H.264 encoder by probing the host
for hardware acceleration, and to create the ffmpeg command lines for the two
transcode modes: GIF to MP4 conversion and watermark overlay.
"""
import subprocess
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from identity.errors import MetadataUnavailable
from identity.utils import FFMPEG, FFPROBE, LogLevel, logger, system_util
from identity.utils.constants import (
    AUDIO_BITRATE,
    AUDIO_CODEC,
    OVERLAY_MARGIN,
    PIXEL_FORMAT,
    PROBE_TIMEOUT,
    SOFTWARE_CODEC,
    WATERMARK_FRACTION,
)


@dataclass(frozen=True)
class VideoInfo:
    width: int
    height: int
    duration: Optional[float] = None


def parse_dimensions(text: str) -> Tuple[int, int]:
    """Parse ffprobe 'WxH' output (first non-empty line)."""
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if lines:
        parts = lines[0].strip("x").split("x")
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            return int(parts[0]), int(parts[1])
    raise MetadataUnavailable(f"Could not determine video dimensions from {text!r}")


def parse_duration(text: str) -> float:
    """Parse ffprobe's bare duration value in seconds."""
    try:
        duration = float(text.strip().splitlines()[0])
    except (ValueError, IndexError):
        raise MetadataUnavailable(f"Could not determine video duration from {text!r}") from None
    if duration < 0:
        raise MetadataUnavailable(f"Negative video duration {duration}")
    return duration


def _ffprobe(args: List[str], path: Path) -> str:
    cmd = [FFPROBE, "-v", "error", *args, str(path)]
    try:
        code, out, err = system_util.run_cmd(cmd, timeout=PROBE_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise MetadataUnavailable(f"ffprobe could not run on {path.name}: {e}") from e
    if code != 0:
        raise MetadataUnavailable(f"ffprobe exited with code {code} for {path.name}: {err.strip()[:200]}")
    return out


def probe_dimensions(path: Path) -> Tuple[int, int]:
    """Width and height of the first video stream."""
    out = _ffprobe(["-select_streams", "v:0", "-show_entries", "stream=width,height",
                    "-of", "csv=s=x:p=0"], path)
    return parse_dimensions(out)


def probe_duration(path: Path) -> float:
    """Container duration in seconds."""
    out = _ffprobe(["-show_entries", "format=duration",
                    "-of", "default=noprint_wrappers=1:nokey=1"], path)
    return parse_duration(out)


def ffprobe_video_info(path: Path) -> VideoInfo:
    """Probe video file for dimensions and duration."""
    width, height = probe_dimensions(path)
    return VideoInfo(width=width, height=height, duration=probe_duration(path))


# ---------------------------------------------------------------------------
# Hardware encoder selection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CodecProbe:
    name: str
    probe: Callable[[], bool]
    codec: str


def _probe_output(cmd: List[str]) -> Optional[str]:
    """Run a diagnostic command; None when it cannot run or exits non-zero."""
    try:
        code, out, err = system_util.run_cmd(cmd, timeout=PROBE_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.log("codec.probe_error", LogLevel.DEBUG, cmd=cmd[0], error=str(e))
        return None
    if code != 0:
        return None
    return out + err


def _nvidia_available() -> bool:
    out = _probe_output(["nvidia-smi", "-L"])
    return bool(out) and "GPU" in out


@lru_cache(maxsize=1)
def _ffmpeg_hwaccels() -> str:
    return _probe_output([FFMPEG, "-hide_banner", "-hwaccels"]) or ""


@lru_cache(maxsize=1)
def _ffmpeg_encoders() -> str:
    return _probe_output([FFMPEG, "-hide_banner", "-encoders"]) or ""


def _intel_available() -> bool:
    return "qsv" in _ffmpeg_hwaccels()


def _amd_available() -> bool:
    return "h264_amf" in _ffmpeg_encoders()


CODEC_PREFERENCE: Tuple[CodecProbe, ...] = (
    CodecProbe("nvenc", _nvidia_available, "h264_nvenc"),
    CodecProbe("qsv", _intel_available, "h264_qsv"),
    CodecProbe("amf", _amd_available, "h264_amf"),
    CodecProbe("software", lambda: True, SOFTWARE_CODEC),
)


def select_codec(preference: Sequence[CodecProbe]) -> str:
    """Return the codec of the first entry whose probe succeeds."""
    for entry in preference:
        try:
            available = entry.probe()
        except Exception as e:  # a broken probe only rules out its own entry
            logger.log("codec.probe_error", LogLevel.WARN, probe=entry.name, error=str(e))
            available = False
        logger.log("codec.probe", LogLevel.DEBUG, probe=entry.name, available=available)
        if available:
            return entry.codec
    return SOFTWARE_CODEC


@lru_cache(maxsize=1)
def probe_best_codec() -> str:
    """Best available H.264 encoder, probed once per process."""
    codec = select_codec(CODEC_PREFERENCE)
    logger.log("codec.selected", LogLevel.INFO, codec=codec)
    return codec


# ---------------------------------------------------------------------------
# Command building
# ---------------------------------------------------------------------------

def build_convert_cmd(src: Path, dst: Path, codec: str) -> List[str]:
    """Build ffmpeg command converting an animated GIF into an MP4 intermediate."""
    return [
        FFMPEG,
        "-hide_banner",
        "-y",
        "-i", str(src),
        # yuv420p needs even dimensions
        "-vf", "scale=trunc(iw/2)*2:trunc(ih/2)*2",
        "-c:v", codec,
        "-pix_fmt", PIXEL_FORMAT,
        "-movflags", "+faststart",
        str(dst),
    ]


def watermark_filter(width: int, height: int) -> str:
    """Filter graph scaling the watermark to at most a third of the video and
    overlaying it near the bottom-left corner."""
    max_w = max(1, width // WATERMARK_FRACTION)
    max_h = max(1, height // WATERMARK_FRACTION)
    return (
        f"[1:v]scale=w='min(iw,{max_w})':h='min(ih,{max_h})'"
        f":force_original_aspect_ratio=decrease[wm];"
        f"[0:v][wm]overlay={OVERLAY_MARGIN}:H-h-{OVERLAY_MARGIN}:format=rgb"
    )


def build_watermark_cmd(src: Path, watermark: Path, dst: Path, info: VideoInfo, codec: str) -> List[str]:
    """Build ffmpeg command overlaying the watermark onto a video."""
    return [
        FFMPEG,
        "-hide_banner",
        "-y",
        "-i", str(src),
        "-i", str(watermark),
        "-filter_complex", watermark_filter(info.width, info.height),
        "-c:v", codec,
        "-c:a", AUDIO_CODEC,
        "-b:a", AUDIO_BITRATE,
        "-pix_fmt", PIXEL_FORMAT,
        "-movflags", "+faststart",
        str(dst),
    ]
