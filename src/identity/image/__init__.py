"""Still-image watermarking and animated-image metadata (Pillow)."""

from .core import (
    load_watermark,
    fit_watermark,
    composite_bottom_left,
    watermark_image,
    frame_count,
)

__all__ = [
    "load_watermark",
    "fit_watermark",
    "composite_bottom_left",
    "watermark_image",
    "frame_count",
]
