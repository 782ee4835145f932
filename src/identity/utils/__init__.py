"""
A module providing constants, utility functions, and logging mechanisms
for identity watermarking tasks.

This module includes a collection of constants related to media
classification and processing, utility functions for system operations such
as command execution and process liveness checks, and file utilities for the
output layout. It also integrates a logging mechanism for safe and controlled
outputs.
"""

from .constants import (
    ANIMATED_EXTENSION,
    ERROR_LOG,
    FFMPEG,
    FFPROBE,
    GIFS_FOLDER,
    IMAGE_EXTENSIONS,
    IMAGES_FOLDER,
    JOB_TIMEOUT,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
    UNSUPPORTED_LOG,
    VIDEO_EXTENSIONS,
    VIDEOS_FOLDER,
    WATCHDOG_INTERVAL,
    WATERMARK_FILE,
    WORKERS,
)
from .logger import LogLevel, RunLog

__all__ = [
    "IMAGE_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    "ANIMATED_EXTENSION",
    "IMAGES_FOLDER",
    "GIFS_FOLDER",
    "VIDEOS_FOLDER",
    "ERROR_LOG",
    "UNSUPPORTED_LOG",
    "WATERMARK_FILE",
    "FFMPEG",
    "FFPROBE",
    "WORKERS",
    "WATCHDOG_INTERVAL",
    "JOB_TIMEOUT",
    "STATUS_OK",
    "STATUS_FAIL",
    "STATUS_SKIP",
    "LogLevel",
    "RunLog",
]
