"""
Still-image watermarking with Pillow.

The watermark is composited over the bottom-left corner of each image. When
it is larger than a third of the image in either direction it is shrunk,
keeping its aspect ratio, on a per-image copy so the shared watermark is
never modified by concurrent jobs.
"""
from pathlib import Path
from typing import Tuple

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from identity.errors import MetadataUnavailable
from identity.utils import LogLevel, logger
from identity.utils.constants import WATERMARK_FRACTION

# HEIC/HEIF photos open and save like any other Pillow format
register_heif_opener()


def load_watermark(path: Path) -> Image.Image:
    """Load the watermark fully into memory as RGBA."""
    with Image.open(path) as wm:
        return wm.convert("RGBA")


def _max_watermark_size(size: Tuple[int, int]) -> Tuple[int, int]:
    width, height = size
    return max(1, width // WATERMARK_FRACTION), max(1, height // WATERMARK_FRACTION)


def fit_watermark(watermark: Image.Image, target_size: Tuple[int, int]) -> Image.Image:
    """Return a copy of the watermark that fits within a third of target_size."""
    max_width, max_height = _max_watermark_size(target_size)
    fitted = watermark.copy()
    if fitted.width > max_width or fitted.height > max_height:
        fitted.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    return fitted


def composite_bottom_left(base: Image.Image, watermark: Image.Image) -> Image.Image:
    """Alpha-composite the watermark flush with the bottom-left corner of base."""
    canvas = base.convert("RGBA")
    mark = fit_watermark(watermark, canvas.size)
    canvas.alpha_composite(mark, dest=(0, canvas.height - mark.height))
    return canvas


def _has_alpha(img: Image.Image) -> bool:
    return "A" in img.getbands() or "transparency" in img.info


def watermark_image(src: Path, watermark: Image.Image, dst: Path) -> Path:
    """Composite the watermark onto src and save the result to dst."""
    with Image.open(src) as img:
        img.load()
        keep_alpha = _has_alpha(img)
        fmt = img.format
        result = composite_bottom_left(img, watermark)

    if not keep_alpha:
        result = result.convert("RGB")

    dst.parent.mkdir(parents=True, exist_ok=True)
    result.save(dst, format=fmt)
    logger.log("image.complete", LogLevel.DEBUG, file=src.name, dst=str(dst))
    return dst


def frame_count(path: Path) -> int:
    """Number of frames in an animated image (1 for stills)."""
    try:
        with Image.open(path) as img:
            return getattr(img, "n_frames", 1)
    except (OSError, UnidentifiedImageError) as e:
        raise MetadataUnavailable(f"could not read frames of {path.name}: {e}") from e
