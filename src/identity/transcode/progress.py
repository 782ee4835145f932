"""
Streaming progress extraction from ffmpeg's stderr.

ffmpeg reports progress in free-form status lines such as

    frame=  120 fps= 30 q=28.0 size=     512KiB time=00:00:04.00 bitrate=1048.6kbits/s speed=1.0x

A `ProgressParser` knows the total amount of work for one job (seconds of
video, or frames of a GIF) and turns each matching line into a fraction in
[0, 1]. Lines that carry no usable marker leave its state untouched.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Pattern

from identity.image import frame_count
from identity.utils import time_util

TIME_REGEX = re.compile(r"time=\s*(-?[\d:.]+)")
FRAME_REGEX = re.compile(r"frame=\s*(\d+)")


@dataclass
class ProgressState:
    total_units: float
    current_units: float = 0.0

    @property
    def fraction(self) -> float:
        if self.total_units <= 0:
            return 0.0
        return min(1.0, max(0.0, self.current_units / self.total_units))


class ProgressParser:
    """Feed it output lines; it returns a fraction whenever a line has a marker."""

    def __init__(self, total_units: float, pattern: Pattern[str]):
        self.state = ProgressState(total_units=float(total_units or 0))
        self.pattern = pattern

    @classmethod
    def for_duration(cls, total_seconds: float) -> "ProgressParser":
        return cls(total_seconds, TIME_REGEX)

    @classmethod
    def for_frames(cls, total_frames: int) -> "ProgressParser":
        return cls(total_frames, FRAME_REGEX)

    @classmethod
    def for_animation(cls, path: Path) -> "ProgressParser":
        """Frame-based parser; the frame count is read once, here."""
        return cls.for_frames(frame_count(path))

    @property
    def fraction(self) -> float:
        return self.state.fraction

    def _units(self, token: str) -> Optional[float]:
        if self.pattern is FRAME_REGEX:
            return float(token)
        return time_util.parse_timestamp(token)

    def feed(self, line: Optional[str]) -> Optional[float]:
        if not line:
            return None
        match = self.pattern.search(line)
        if not match:
            return None
        units = self._units(match.group(1))
        if units is None:
            return None
        # ffmpeg occasionally reports a slightly earlier position; never go backwards
        self.state.current_units = max(self.state.current_units, units)
        return self.state.fraction
