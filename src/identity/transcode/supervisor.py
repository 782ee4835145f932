"""
Supervision of external worker processes.

A `ProcessSupervisor` launches one external command, streams its stdout and
stderr line by line (ffmpeg's carriage-return status lines included), feeds
the progress stream through a `ProgressParser` and validates the exit code.

Each supervisor owns a `Watchdog` thread. While the child runs, the watchdog
checks every interval that the supervising process id is still alive and,
when configured, that the job deadline has not passed. If either check fails
it kills the child and silences the output sinks. The watchdog is stopped and
joined before `run()` returns.

Every launched process is tracked in a `ProcessRegistry` so a cancellation
signal can terminate everything this run started.
"""
import os
import subprocess
import threading
import time
from collections import deque
from enum import Enum
from typing import Callable, List, Optional

from identity.errors import DeadlineExceeded, ExternalProcessFailed, JobCancelled, WatchdogTermination
from identity.transcode.progress import ProgressParser
from identity.utils import JOB_TIMEOUT, WATCHDOG_INTERVAL, LogLevel, RunLog, logger, system_util

LineSink = Callable[[str], None]

TRIP_PARENT = "parent-exited"
TRIP_DEADLINE = "deadline"


class JobState(Enum):
    NOT_STARTED = "not-started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ProcessRegistry:
    """Thread-safe set of child processes started by this run.

    `terminate_all` closes the registry: a process registered afterwards is
    killed straight away, so nothing launched during shutdown survives it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._processes = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def register(self, process: subprocess.Popen) -> bool:
        """Track process; returns False (after killing it) once closed."""
        with self._lock:
            if not self._closed:
                self._processes.add(process)
                return True
        try:
            process.kill()
        except OSError:
            pass  # already gone
        process.wait()
        logger.log("process.rejected", LogLevel.WARN, pid=process.pid)
        return False

    def unregister(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.discard(process)

    def running(self) -> List[subprocess.Popen]:
        with self._lock:
            return [p for p in self._processes if p.poll() is None]

    def terminate_all(self, run_log: Optional[RunLog] = None, wait: float = 5.0) -> int:
        """Close the registry and kill every tracked process still running.
        Best effort: processes that already exited are ignored, kill failures
        are logged."""
        with self._lock:
            self._closed = True
        killed = 0
        for process in self.running():
            try:
                process.kill()
                process.wait(timeout=wait)
                killed += 1
            except ProcessLookupError:
                continue
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.log("process.kill_failed", LogLevel.WARN, pid=process.pid, error=str(e))
                if run_log is not None:
                    run_log.error(f"Failed to terminate process {process.pid}: {e}", e)
        if killed:
            logger.log("process.terminated", LogLevel.WARN, count=killed)
        return killed


REGISTRY = ProcessRegistry()


class Watchdog(threading.Thread):
    """Liveness tether between a child process and its supervisor."""

    def __init__(self, process: subprocess.Popen, is_parent_alive: Callable[[], bool],
                 interval: float, timeout: Optional[float] = None,
                 on_trip: Optional[Callable[[], None]] = None):
        super().__init__(name=f"watchdog-{process.pid}", daemon=True)
        self.process = process
        self.is_parent_alive = is_parent_alive
        self.interval = interval
        self.timeout = timeout
        self.on_trip = on_trip
        self.reason: Optional[str] = None
        self._halt = threading.Event()

    def run(self) -> None:
        started = time.monotonic()
        while not self._halt.wait(self.interval):
            if self.process.poll() is not None:
                return
            if not self.is_parent_alive():
                self._trip(TRIP_PARENT)
                return
            if self.timeout is not None and time.monotonic() - started >= self.timeout:
                self._trip(TRIP_DEADLINE)
                return

    def _trip(self, reason: str) -> None:
        self.reason = reason
        if self.on_trip is not None:
            self.on_trip()
        try:
            self.process.kill()
        except OSError:
            pass  # already gone
        logger.log("watchdog.kill", LogLevel.WARN, pid=self.process.pid, reason=reason)

    def stop(self) -> None:
        self._halt.set()


class ProcessSupervisor:
    """Run one external command to completion under a watchdog."""

    def __init__(self, cmd: List[str],
                 parser: Optional[ProgressParser] = None,
                 on_progress: Optional[Callable[[float], None]] = None,
                 stdout_sink: Optional[LineSink] = None,
                 stderr_sink: Optional[LineSink] = None,
                 progress_stream: str = "stderr",
                 watchdog_interval: float = WATCHDOG_INTERVAL,
                 timeout: Optional[float] = JOB_TIMEOUT,
                 parent_pid: Optional[int] = None,
                 is_parent_alive: Optional[Callable[[], bool]] = None,
                 registry: ProcessRegistry = REGISTRY):
        self.cmd = cmd
        self.parser = parser
        self.on_progress = on_progress
        self.sinks = {"stdout": stdout_sink, "stderr": stderr_sink}
        self.progress_stream = progress_stream
        self.watchdog_interval = watchdog_interval
        self.timeout = timeout
        parent_pid = os.getpid() if parent_pid is None else parent_pid
        self.is_parent_alive = is_parent_alive or (lambda: system_util.pid_alive(parent_pid))
        self.registry = registry
        self.state = JobState.NOT_STARTED
        self.returncode: Optional[int] = None
        self._stderr_tail = deque(maxlen=20)
        self._sink_lock = threading.Lock()
        self._silenced = False

    def _silence(self) -> None:
        with self._sink_lock:
            self._silenced = True

    def _dispatch(self, stream: str, line: str) -> None:
        line = line.rstrip("\r\n")
        with self._sink_lock:
            if self._silenced:
                return
            if stream == "stderr" and line:
                self._stderr_tail.append(line)
            sink = self.sinks[stream]
            if sink is not None:
                sink(line)
            if stream == self.progress_stream and self.parser is not None:
                fraction = self.parser.feed(line)
                if fraction is not None and self.on_progress is not None:
                    self.on_progress(fraction)

    def _pump(self, stream: str, pipe) -> None:
        for line in pipe:
            self._dispatch(stream, line)

    def _wants(self, stream: str) -> bool:
        return self.sinks[stream] is not None or self.progress_stream == stream

    def run(self) -> int:
        """Start the process and block until it exits; 0 or raise."""
        self.state = JobState.RUNNING
        try:
            process = subprocess.Popen(
                self.cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if self._wants("stdout") else subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError:
            self.state = JobState.FAILED
            raise

        if not self.registry.register(process):
            for pipe in (process.stdout, process.stderr):
                if pipe is not None:
                    pipe.close()
            self.state = JobState.FAILED
            raise JobCancelled(f"{self.cmd[0]} not started: the run is shutting down")

        watchdog = Watchdog(process, self.is_parent_alive, self.watchdog_interval,
                            timeout=self.timeout, on_trip=self._silence)
        watchdog.start()
        stdout_reader = None
        try:
            if process.stdout is not None:
                stdout_reader = threading.Thread(target=self._pump, args=("stdout", process.stdout),
                                                 name=f"stdout-{process.pid}", daemon=True)
                stdout_reader.start()
            self._pump("stderr", process.stderr)
            if stdout_reader is not None:
                stdout_reader.join()
            self.returncode = process.wait()
        finally:
            if process.poll() is None:
                process.kill()
                process.wait()
            watchdog.stop()
            watchdog.join()
            self.registry.unregister(process)
            for pipe in (process.stdout, process.stderr):
                if pipe is not None:
                    pipe.close()

        if watchdog.reason == TRIP_PARENT:
            self.state = JobState.FAILED
            raise WatchdogTermination(f"{self.cmd[0]} killed: supervising process exited")
        if watchdog.reason == TRIP_DEADLINE:
            self.state = JobState.FAILED
            raise DeadlineExceeded(self.timeout)
        if self.returncode != 0:
            self.state = JobState.FAILED
            raise ExternalProcessFailed(self.returncode, self.cmd, "\n".join(self._stderr_tail))

        self.state = JobState.SUCCEEDED
        return self.returncode
