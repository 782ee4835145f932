"""
Bounded worker pool running one job per media item.

`run_all` submits every item to a `ThreadPoolExecutor` of `max_workers`
threads and waits for all of them: it is the barrier between processing
phases. A job either returns the path it produced or raises; the exception
is caught at the job boundary and becomes a failed `JobResult`, so one bad
item never cancels its siblings.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from identity.errors import ExternalProcessFailed, JobCancelled
from identity.media import MediaItem
from identity.utils import STATUS_FAIL, STATUS_OK, STATUS_SKIP, WORKERS, LogLevel, RunLog, logger, time_util

JobFn = Callable[[MediaItem], Path]


@dataclass(frozen=True)
class JobResult:
    item: MediaItem
    status: str
    output_path: Optional[Path] = None
    reason: Optional[str] = None
    exit_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAIL

    @property
    def skipped(self) -> bool:
        return self.status == STATUS_SKIP


def _run_job(item: MediaItem, job_fn: JobFn, phase: str, run_log: Optional[RunLog],
             cancel_event: Optional[threading.Event]) -> JobResult:
    if cancel_event is not None and cancel_event.is_set():
        return JobResult(item, STATUS_SKIP, reason="cancelled")
    try:
        output = job_fn(item)
    except JobCancelled:
        return JobResult(item, STATUS_SKIP, reason="cancelled")
    except Exception as e:
        exit_code = e.exit_code if isinstance(e, ExternalProcessFailed) else None
        reason = f"{type(e).__name__}: {e}"
        logger.log("job.failed", LogLevel.ERROR,
                   phase=phase,
                   id=item.id,
                   file=item.display_name,
                   exit_code=exit_code,
                   error=reason)
        if run_log is not None:
            run_log.error(f"Error processing {item.display_name} ({phase}): {e}", e)
        return JobResult(item, STATUS_FAIL, reason=reason, exit_code=exit_code)
    return JobResult(item, STATUS_OK, output_path=output)


def run_all(items: Sequence[MediaItem], job_fn: JobFn, max_workers: int = WORKERS,
            phase: str = "jobs", run_log: Optional[RunLog] = None,
            cancel_event: Optional[threading.Event] = None,
            show_progress: bool = True) -> List[JobResult]:
    """Run job_fn over items with at most max_workers in flight.

    Returns one JobResult per item, in completion order, once every job has
    finished.
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")
    if not items:
        return []

    results: List[JobResult] = []
    results_lock = threading.Lock()
    start_time = time.time()

    logger.log("phase.start", LogLevel.INFO, phase=phase, jobs=len(items), workers=max_workers)
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=phase) as executor:
        futs = {
            executor.submit(_run_job, item, job_fn, phase, run_log, cancel_event): item
            for item in items
        }
        with tqdm(total=len(futs), desc=phase, unit="file", disable=not show_progress) as bar:
            for fut in as_completed(futs):
                result = fut.result()
                with results_lock:
                    results.append(result)
                    completed = len(results)
                bar.update(1)

                elapsed_seconds = time.time() - start_time
                logger.log("phase.progress", LogLevel.DEBUG,
                           phase=phase,
                           completed=completed,
                           total=len(futs),
                           status=result.status,
                           file=result.item.display_name,
                           eta=time_util.get_eta_total(completed, len(futs), elapsed_seconds))

    ok = sum(1 for r in results if r.ok)
    logger.log("phase.complete", LogLevel.INFO,
               phase=phase,
               ok=ok,
               failed=sum(1 for r in results if r.failed),
               skipped=sum(1 for r in results if r.skipped),
               elapsed=time_util.format_duration(time.time() - start_time))
    return results
