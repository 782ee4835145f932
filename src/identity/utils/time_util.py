import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_TIMESTAMP_REGEX = re.compile(r"^(\d+):([0-5]?\d):([0-5]?\d(?:\.\d+)?)$")


def parse_timestamp(value: str) -> Optional[float]:
    """Convert an ffmpeg HH:MM:SS.ff timestamp to seconds, or None if malformed."""
    match = _TIMESTAMP_REGEX.match(value.strip())
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def get_eta_single_file(fraction, elapsed_seconds):
    remaining_seconds = elapsed_seconds * (1 - fraction) / fraction
    return _get_eta_string(remaining_seconds)


def get_eta_total(completed_count, total_count, elapsed_seconds):
    avg_time_per_file = elapsed_seconds / completed_count
    remaining_files = total_count - completed_count
    remaining_seconds = avg_time_per_file * remaining_files
    return _get_eta_string(remaining_seconds)


def format_duration(time_in_seconds):
    hours = int(time_in_seconds // 3600)
    mins = int((time_in_seconds % 3600) // 60)
    secs = int(time_in_seconds % 60)
    if hours > 0:
        return f"{hours}h{mins}m{secs}s"
    if mins > 0:
        return f"{mins}m{secs}s"
    return f"{secs}s"


def _get_eta_string(time_in_seconds):
    completion_time = (datetime.now(timezone.utc) + timedelta(
        seconds=time_in_seconds)).strftime("%Y-%m-%d %H:%M:%S")
    return f"{completion_time} ({format_duration(time_in_seconds)})"
