"""
Constants and configuration settings for identity watermarking.

This module contains the constants used for classifying and processing dropped
media. It includes the recognised image and video extensions, output folder
names, log file names, status strings for job results and the run settings
that can be overridden from the environment (or a local .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# Output folder constants (relative to the base directory of a run)
IMAGES_FOLDER = "images"
GIFS_FOLDER = "gifs"
VIDEOS_FOLDER = "videos"

# Log files, appended to and never truncated
ERROR_LOG = "error.log"
UNSUPPORTED_LOG = "unsupported_files.log"

# Watermark asset, required before any phase starts
WATERMARK_FILE = os.getenv("IDENTITY_WATERMARK", "watermark.png")

# External binaries
FFMPEG = os.getenv("IDENTITY_FFMPEG", "ffmpeg")
FFPROBE = os.getenv("IDENTITY_FFPROBE", "ffprobe")

# Run settings
WORKERS = int(os.getenv("IDENTITY_WORKERS", "8"))
WATCHDOG_INTERVAL = _env_float("IDENTITY_WATCHDOG_INTERVAL", 1.0)
JOB_TIMEOUT = _env_float("IDENTITY_JOB_TIMEOUT", None)
PROBE_TIMEOUT = _env_float("IDENTITY_PROBE_TIMEOUT", 10.0)
PROGRESS_LOG_INTERVAL = 5.0  # Seconds between progress log lines per job

# Encoding parameters
SOFTWARE_CODEC = "libx264"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"
PIXEL_FORMAT = "yuv420p"
OVERLAY_MARGIN = 10  # Pixels between the watermark and the bottom-left corner
WATERMARK_FRACTION = 3  # Watermark may use at most 1/3 of width and height

# Accepted file extensions
# Still formats Pillow decodes (HEIC/HEIF via pillow-heif); camera RAW and SVG are not among them
IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tiff", ".tif", ".ico", ".heic", ".heif",
}
VIDEO_EXTENSIONS = {
    ".mp4", ".avi", ".mpeg", ".mpg", ".webm", ".mov", ".mkv", ".flv", ".wmv", ".3gp",
    ".3g2", ".m4v", ".f4v", ".f4p", ".f4a", ".f4b", ".vob", ".ogv", ".ogg", ".drc",
    ".mng", ".mts", ".m2ts", ".ts", ".rm", ".rmvb", ".asf", ".amv", ".m2v", ".svi",
    ".3gpp", ".3gpp2",
}
ANIMATED_EXTENSION = ".gif"

# Processing status codes
STATUS_OK = "OK"
STATUS_FAIL = "FAIL"
STATUS_SKIP = "SKIP"
