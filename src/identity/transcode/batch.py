"""
This module provides the two ffmpeg jobs of the animated-media phase.

`convert_gif` turns an animated GIF into an MP4 intermediate and
`watermark_video` overlays the watermark onto a video. Both run ffmpeg under
a `ProcessSupervisor`, report progress through a throttled logger, and raise
an `identity.errors` exception on failure, leaving partial output removed.
"""
import time
from pathlib import Path
from typing import Callable, Optional

from identity.errors import JobCancelled
from identity.transcode import core
from identity.transcode.progress import ProgressParser
from identity.transcode.supervisor import ProcessSupervisor
from identity.utils import LogLevel, logger, time_util
from identity.utils.constants import PROGRESS_LOG_INTERVAL


class ProgressLogger:
    """Progress callback logging at most one line per interval for a job."""

    def __init__(self, name: str, interval: float = PROGRESS_LOG_INTERVAL):
        self.name = name
        self.interval = interval
        self.started = time.time()
        self._last_log = 0.0

    def __call__(self, fraction: float) -> None:
        now = time.time()
        if now - self._last_log < self.interval and fraction < 1.0:
            return
        self._last_log = now
        eta = "N/A"
        if fraction > 0:
            eta = time_util.get_eta_single_file(fraction, now - self.started)
        logger.log("transcode.progress", LogLevel.INFO,
                   file=self.name,
                   pct=round(fraction * 100, 1),
                   eta=eta)


def _discard_partial(dst: Path) -> None:
    if dst.exists():
        try:
            dst.unlink()
        except OSError:
            pass  # Best effort cleanup


def _supervise(cmd, src: Path, dst: Path, parser: ProgressParser,
               on_progress: Optional[Callable[[float], None]]) -> None:
    supervisor = ProcessSupervisor(cmd, parser=parser,
                                   on_progress=on_progress or ProgressLogger(src.name))
    try:
        supervisor.run()
    except JobCancelled:
        logger.log("transcode.cancelled", LogLevel.WARN, file=src.name)
        raise
    except Exception as e:
        _discard_partial(dst)
        logger.log("transcode.failed", LogLevel.ERROR,
                   file=src.name,
                   exit_code=supervisor.returncode,
                   error=str(e))
        raise


def convert_gif(src: Path, dst: Path, codec: Optional[str] = None,
                on_progress: Optional[Callable[[float], None]] = None) -> Path:
    """Convert an animated GIF to an MP4 intermediate at dst."""
    codec = codec or core.probe_best_codec()
    parser = ProgressParser.for_animation(src)
    dst.parent.mkdir(parents=True, exist_ok=True)
    cmd = core.build_convert_cmd(src, dst, codec)

    logger.log("transcode.start", LogLevel.INFO,
               mode="convert",
               file=src.name,
               dst=dst.name,
               codec=codec,
               frames=int(parser.state.total_units))
    _supervise(cmd, src, dst, parser, on_progress)
    logger.log("transcode.complete", LogLevel.INFO, mode="convert", file=src.name)
    return dst


def watermark_video(src: Path, watermark: Path, dst: Path, codec: Optional[str] = None,
                    on_progress: Optional[Callable[[float], None]] = None) -> Path:
    """Overlay the watermark onto the video at src and write dst."""
    codec = codec or core.probe_best_codec()
    info = core.ffprobe_video_info(src)
    parser = ProgressParser.for_duration(info.duration or 0)
    dst.parent.mkdir(parents=True, exist_ok=True)
    cmd = core.build_watermark_cmd(src, watermark, dst, info, codec)

    logger.log("transcode.start", LogLevel.INFO,
               mode="watermark",
               file=src.name,
               dst=dst.name,
               codec=codec,
               source_res=f"{info.width}x{info.height}",
               duration=info.duration)
    logger.log("transcode.details", LogLevel.DEBUG, cmd=" ".join(cmd))
    _supervise(cmd, src, dst, parser, on_progress)
    logger.log("transcode.complete", LogLevel.INFO, mode="watermark", file=src.name)
    return dst
