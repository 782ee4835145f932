"""
Batch orchestration: classify dropped files and run the processing phases.

Phases run strictly one after another, each as a worker-pool barrier:

1. images           - watermark every still image with Pillow
2. gif-convert      - convert every animated GIF to an MP4 intermediate
3. video-watermark  - watermark the intermediates and every dropped video

Unsupported files are written to the exclusions log and take no part in any
phase. The only run-fatal condition is a missing watermark asset; everything
else is a per-item failure recorded in the returned `Report`.
"""
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from PIL import UnidentifiedImageError

from identity import image, transcode
from identity.errors import PreconditionFailure
from identity.media import Category, MediaItem, build_items
from identity.pool import JobResult, run_all
from identity.utils import ERROR_LOG, UNSUPPORTED_LOG, WATERMARK_FILE, WORKERS, LogLevel, RunLog, logger, time_util
from identity.utils.file_util import ensure_dir, image_output_path, output_folders, video_output_path

PHASE_IMAGES = "images"
PHASE_CONVERT = "gif-convert"
PHASE_WATERMARK = "video-watermark"


@dataclass
class Report:
    items: List[MediaItem]
    unsupported: List[MediaItem] = field(default_factory=list)
    phases: Dict[str, List[JobResult]] = field(default_factory=dict)
    error_log: Optional[Path] = None
    unsupported_log: Optional[Path] = None
    elapsed: float = 0.0

    def final_results(self) -> List[JobResult]:
        """One result per dropped (supported) item: the last phase it reached."""
        final: Dict[int, JobResult] = {}
        for results in self.phases.values():
            for result in results:
                final[result.item.root_id] = result
        return [final[key] for key in sorted(final)]

    def counts(self) -> Dict[str, int]:
        final = self.final_results()
        return {
            "ok": sum(1 for r in final if r.ok),
            "failed": sum(1 for r in final if r.failed),
            "skipped": sum(1 for r in final if r.skipped),
            "unsupported": len(self.unsupported),
        }

    def summary_lines(self) -> List[str]:
        lines = []
        for phase, results in self.phases.items():
            ok = sum(1 for r in results if r.ok)
            lines.append(f"{phase}: {ok}/{len(results)} succeeded")
            for r in sorted(results, key=lambda r: r.item.id):
                if not r.ok:
                    lines.append(f"  {r.status} {r.item.display_name}: {r.reason}")
        counts = self.counts()
        lines.append(f"Total: {counts['ok']} OK, {counts['failed']} failed, "
                     f"{counts['skipped']} skipped, {counts['unsupported']} unsupported "
                     f"in {time_util.format_duration(self.elapsed)}")
        if counts["failed"] and self.error_log is not None:
            lines.append(f"Errors logged to: {self.error_log}")
        if counts["unsupported"] and self.unsupported_log is not None:
            lines.append(f"Unsupported files logged to: {self.unsupported_log}")
        return lines


def _require_source(item: MediaItem) -> Path:
    if not item.source_path.is_file():
        raise PreconditionFailure(f"Input file not found: {item.source_path}")
    return item.source_path


def _log_files(title: str, items: List[MediaItem]) -> None:
    logger.log("batch.files", LogLevel.INFO, category=title, count=len(items))
    for item in items:
        logger.log("batch.file", LogLevel.DEBUG, category=title, id=item.id,
                   name=item.display_name, path=str(item.source_path))


def run_batch(paths: Iterable[str | Path], base_dir: Optional[Path] = None,
              watermark: Optional[Path] = None, max_workers: int = WORKERS,
              run_log: Optional[RunLog] = None, cancel_event: Optional[threading.Event] = None,
              show_progress: bool = True) -> Report:
    """Watermark every dropped file and return a report of what happened.

    Args:
        paths: Dropped file paths, in the order they were given
        base_dir: Folder receiving images/, gifs/, videos/ and the log files (default: cwd)
        watermark: Watermark asset (default: base_dir / WATERMARK_FILE)
        max_workers: Concurrent jobs per phase
        run_log: Durable log collaborator (default: error.log / unsupported_files.log in base_dir)
        cancel_event: When set, jobs that have not started are skipped

    Raises:
        PreconditionFailure: The watermark asset is missing or unreadable.
    """
    start_time = time.time()
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    watermark = Path(watermark) if watermark is not None else base / WATERMARK_FILE
    run_log = run_log or RunLog(base / ERROR_LOG, base / UNSUPPORTED_LOG)

    if not watermark.is_file():
        raise PreconditionFailure(f"Watermark file not found: {watermark}")

    items = build_items(paths)
    report = Report(items=items, error_log=run_log.error_log, unsupported_log=run_log.unsupported_log)

    images = [i for i in items if i.category is Category.IMAGE]
    videos = [i for i in items if i.category is Category.VIDEO]
    gifs = [i for i in items if i.category is Category.ANIMATED_IMAGE]
    report.unsupported = [i for i in items if i.category is Category.UNSUPPORTED]
    for item in report.unsupported:
        run_log.unsupported(item.source_path)
        logger.log("batch.unsupported", LogLevel.WARN, id=item.id, file=item.display_name)

    _log_files("Image Files", images)
    _log_files("Video Files", videos)
    _log_files("GIF Files", gifs)
    logger.log("batch.start", LogLevel.INFO, files=len(items), images=len(images), videos=len(videos),
               gifs=len(gifs), unsupported=len(report.unsupported), workers=max_workers,
               base=str(base))

    images_dir, gifs_dir, videos_dir = output_folders(base)
    pool_args = dict(max_workers=max_workers, run_log=run_log, cancel_event=cancel_event,
                     show_progress=show_progress)

    # Phase 1: still images
    if images:
        ensure_dir(images_dir)
        try:
            mark = image.load_watermark(watermark)
        except (OSError, UnidentifiedImageError) as e:
            raise PreconditionFailure(f"Watermark file unreadable: {watermark}: {e}") from e

        def watermark_still(item: MediaItem) -> Path:
            src = _require_source(item)
            return image.watermark_image(src, mark, image_output_path(src, images_dir))

        report.phases[PHASE_IMAGES] = run_all(images, watermark_still, phase=PHASE_IMAGES, **pool_args)

    if gifs or videos:
        codec = transcode.probe_best_codec()

        # Phase 2a: GIF -> MP4 intermediates
        intermediates: List[MediaItem] = []
        if gifs:
            ensure_dir(gifs_dir)

            def convert(item: MediaItem) -> Path:
                src = _require_source(item)
                return transcode.convert_gif(src, video_output_path(src, gifs_dir), codec=codec)

            converted = run_all(gifs, convert, phase=PHASE_CONVERT, **pool_args)
            report.phases[PHASE_CONVERT] = converted

            next_id = max(i.id for i in items) + 1
            for result in sorted(converted, key=lambda r: r.item.id):
                if result.ok:
                    intermediates.append(result.item.derive(next_id, result.output_path, Category.VIDEO))
                    next_id += 1

        # Phase 2b: watermark intermediates together with the dropped videos
        to_watermark = videos + intermediates
        if to_watermark:
            ensure_dir(videos_dir)

            def watermark_clip(item: MediaItem) -> Path:
                src = _require_source(item)
                return transcode.watermark_video(src, watermark, video_output_path(src, videos_dir), codec=codec)

            report.phases[PHASE_WATERMARK] = run_all(to_watermark, watermark_clip, phase=PHASE_WATERMARK,
                                                     **pool_args)

    report.elapsed = time.time() - start_time
    counts = report.counts()
    logger.log("batch.complete", LogLevel.INFO, elapsed=time_util.format_duration(report.elapsed), **counts)
    return report
