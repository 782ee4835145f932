"""
Add an identity watermark to dropped files.

Every file given on the command line (typically by dropping files onto the
program) is classified as an image, a video or an animated GIF, watermarked
with watermark.png and written to images/, gifs/ or videos/.
"""

import argparse
import atexit
import os
import signal
import sys
import threading
from pathlib import Path

import identity as identity_module
from identity.errors import PreconditionFailure
from identity.pipeline import run_batch
from identity.transcode import REGISTRY
from identity.utils import (
    ERROR_LOG, FFMPEG, FFPROBE, UNSUPPORTED_LOG, WORKERS, LogLevel, RunLog, logger, system_util,
)

_cancel_event = threading.Event()
_run_log: RunLog | None = None
_shutdown_thread: threading.Thread | None = None


def _shutdown(sig_name: str) -> None:
    """Kill every ffmpeg process this run started."""
    logger.safe_print(f"\nShutdown signal received ({sig_name}). Terminating worker processes...")
    REGISTRY.terminate_all(run_log=_run_log)
    logger.safe_print("Shutdown complete.")


def _signal_handler(signum, frame):
    """Stop admitting jobs and hand the kill-all to a shutdown thread.

    The main thread may be holding the logger lock when the signal lands,
    so the kill-all and its logging run on the shutdown thread instead.
    """
    global _shutdown_thread
    try:
        sig_name = signal.Signals(signum).name
    except ValueError:
        sig_name = str(signum)
    _cancel_event.set()
    if _shutdown_thread is None:
        _shutdown_thread = threading.Thread(target=_shutdown, args=(sig_name,), name="shutdown")
        _shutdown_thread.start()
    sys.exit(130)


def _cleanup():
    """Cleanup function called on exit."""
    REGISTRY.terminate_all(run_log=_run_log)


def _wait_for_ack(enabled: bool) -> None:
    if not enabled:
        return
    try:
        input("Press enter to finish")
    except EOFError:
        pass


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Add an identity watermark to images, GIFs and videos. "
                    "Uses hardware-accelerated encoding when available.",
        epilog="Example: add-identity photo.jpg clip.mov funny.gif",
    )
    parser.add_argument("files", nargs="*", help="Files to watermark (all treated the same way)")
    parser.add_argument("--base-dir", help="Folder holding watermark.png and receiving output (default: cwd)")
    parser.add_argument("--watermark", help="Watermark image (default: <base-dir>/watermark.png)")
    parser.add_argument("--workers", type=int, default=WORKERS, help=f"Concurrent jobs per phase (default: {WORKERS})")
    parser.add_argument("--no-wait", action="store_true", help="Exit without waiting for enter")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {identity_module.__version__}")
    args = parser.parse_args(argv)

    global _run_log
    logger.set_log_level(LogLevel.DEBUG if args.debug else LogLevel.INFO)

    base = Path(args.base_dir).expanduser().resolve() if args.base_dir else Path.cwd()
    _run_log = RunLog(base / ERROR_LOG, base / UNSUPPORTED_LOG)

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)
    atexit.register(_cleanup)

    system_util.which_or_die(FFMPEG)
    system_util.which_or_die(FFPROBE)

    logger.log("identity.start", LogLevel.INFO, pid=os.getpid(), files=len(args.files), base=str(base))

    try:
        report = run_batch(
            args.files,
            base_dir=base,
            watermark=Path(args.watermark).expanduser() if args.watermark else None,
            max_workers=args.workers,
            run_log=_run_log,
            cancel_event=_cancel_event,
            show_progress=not args.no_progress,
        )
    except PreconditionFailure as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        _run_log.error(str(e), e)
        logger.safe_print(f"{e}. watermark.png should be in the same folder as the source files.")
        _wait_for_ack(not args.no_wait)
        return 2

    logger.safe_print("\n=== Summary ===")
    for line in report.summary_lines():
        logger.safe_print(line)

    _wait_for_ack(not args.no_wait)
    return 1 if report.counts()["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
