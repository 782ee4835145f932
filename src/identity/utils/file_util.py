"""
Path utilities for the output layout of a watermarking run.

This module contains helpers that create the type-specific output folders
under a base directory and compute where each processed file is written.
"""
from pathlib import Path
from typing import Tuple

from identity.utils import GIFS_FOLDER, IMAGES_FOLDER, VIDEOS_FOLDER


def output_folders(base: Path) -> Tuple[Path, Path, Path]:
    """Return the Images, Gifs and Videos folders under base (not created)."""
    return base / IMAGES_FOLDER, base / GIFS_FOLDER, base / VIDEOS_FOLDER


def ensure_dir(path: Path) -> Path:
    """Create `path` (and parents) if missing; safe to call repeatedly."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def image_output_path(src: Path, out_dir: Path) -> Path:
    """Watermarked stills keep their original file name."""
    return out_dir / src.name


def video_output_path(src: Path, out_dir: Path) -> Path:
    """Converted and watermarked videos are always written as .mp4."""
    return out_dir / src.with_suffix(".mp4").name
