"""Video transcoding functionality for identity watermarking.

This package provides three levels of functionality:
- core: Low-level ffmpeg utilities (VideoInfo, probing, encoder selection, command building)
- progress / supervisor: Progress parsing and supervision of running ffmpeg processes
- batch: The GIF conversion and video watermark jobs
"""

from .core import (
    VideoInfo,
    CodecProbe,
    CODEC_PREFERENCE,
    ffprobe_video_info,
    probe_dimensions,
    probe_duration,
    select_codec,
    probe_best_codec,
    build_convert_cmd,
    build_watermark_cmd,
)
from .progress import ProgressParser, ProgressState
from .supervisor import (
    JobState,
    ProcessRegistry,
    ProcessSupervisor,
    Watchdog,
    REGISTRY,
)
from .batch import (
    convert_gif,
    watermark_video,
)

__all__ = [
    # Video info
    "VideoInfo",
    "ffprobe_video_info",
    "probe_dimensions",
    "probe_duration",
    # Encoder selection
    "CodecProbe",
    "CODEC_PREFERENCE",
    "select_codec",
    "probe_best_codec",
    # Commands
    "build_convert_cmd",
    "build_watermark_cmd",
    # Supervision
    "ProgressParser",
    "ProgressState",
    "JobState",
    "ProcessRegistry",
    "ProcessSupervisor",
    "Watchdog",
    "REGISTRY",
    # Jobs
    "convert_gif",
    "watermark_video",
]
