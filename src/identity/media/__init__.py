"""Classification of dropped files into images, videos and animated GIFs."""

from .classifier import (
    Category,
    MediaItem,
    classify,
    build_items,
)

__all__ = [
    "Category",
    "MediaItem",
    "classify",
    "build_items",
]
