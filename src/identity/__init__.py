"""
A media watermarking module for adding an identity mark to dropped content.

This module provides a set of utilities for batch processing still images,
animated GIFs and videos. Each file is classified by extension, a watermark
is composited onto it, and the result is written to a type-specific output
folder. Heavy work is delegated to external collaborators (Pillow for still
images, ffmpeg/ffprobe for video) while this package owns the orchestration.

The module is organized into several categories:
- Classifying dropped files into images, videos and animated GIFs.
- Compositing watermarks onto still images.
- Probing hardware encoders and supervising ffmpeg worker processes.
- Running bounded worker pools and sequencing the processing phases.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
