import os
import subprocess
import sys
import textwrap
import threading
import time

import pytest

from identity.errors import DeadlineExceeded, ExternalProcessFailed, JobCancelled, WatchdogTermination
from identity.transcode.progress import ProgressParser
from identity.transcode.supervisor import JobState, ProcessRegistry, ProcessSupervisor
from identity.utils import system_util


def _python(code: str):
    return [sys.executable, "-c", textwrap.dedent(code)]


FFMPEG_LIKE = _python("""
    import sys, time
    print("ready", flush=True)
    for i in range(1, 6):
        sys.stderr.write(f"frame={i * 10:5d} fps=0.0 time=00:00:0{i}.00 speed=1x\\r")
        sys.stderr.flush()
        time.sleep(0.01)
    sys.stderr.write("\\n")
""")

CHATTY_FOREVER = _python("""
    import sys, time
    for i in range(3000):
        sys.stderr.write(f"time=00:00:{i % 60:02d}.00\\n")
        sys.stderr.flush()
        time.sleep(0.01)
""")


def test_streams_progress_from_carriage_return_lines():
    fractions, out_lines, err_lines = [], [], []
    registry = ProcessRegistry()
    supervisor = ProcessSupervisor(
        FFMPEG_LIKE,
        parser=ProgressParser.for_duration(5.0),
        on_progress=fractions.append,
        stdout_sink=out_lines.append,
        stderr_sink=err_lines.append,
        watchdog_interval=0.05,
        registry=registry,
    )

    assert supervisor.state is JobState.NOT_STARTED
    assert supervisor.run() == 0

    assert supervisor.state is JobState.SUCCEEDED
    assert out_lines == ["ready"]
    assert fractions == pytest.approx([0.2, 0.4, 0.6, 0.8, 1.0])
    assert len([ln for ln in err_lines if "frame=" in ln]) == 5
    assert registry.running() == []


def test_nonzero_exit_raises_with_code():
    supervisor = ProcessSupervisor(
        _python("import sys; sys.stderr.write('Conversion failed!\\n'); sys.exit(3)"),
        watchdog_interval=0.05,
        registry=ProcessRegistry(),
    )

    with pytest.raises(ExternalProcessFailed) as excinfo:
        supervisor.run()

    assert excinfo.value.exit_code == 3
    assert "Conversion failed!" in excinfo.value.stderr_tail
    assert supervisor.state is JobState.FAILED


def test_spawn_failure_propagates():
    supervisor = ProcessSupervisor(["identity-no-such-binary-xyz"], registry=ProcessRegistry())

    with pytest.raises(FileNotFoundError):
        supervisor.run()
    assert supervisor.state is JobState.FAILED


def test_watchdog_kills_child_when_parent_is_gone():
    parent_alive = threading.Event()
    parent_alive.set()
    lines = []

    def sink(line):
        lines.append(line)
        if len(lines) == 3:
            parent_alive.clear()

    registry = ProcessRegistry()
    supervisor = ProcessSupervisor(
        CHATTY_FOREVER,
        stderr_sink=sink,
        watchdog_interval=0.05,
        is_parent_alive=parent_alive.is_set,
        registry=registry,
    )

    started = time.monotonic()
    with pytest.raises(WatchdogTermination):
        supervisor.run()

    assert time.monotonic() - started < 5
    assert supervisor.state is JobState.FAILED
    assert registry.running() == []
    seen = len(lines)
    time.sleep(0.2)
    assert len(lines) == seen


def test_deadline_kills_long_running_child():
    supervisor = ProcessSupervisor(
        _python("import time; time.sleep(30)"),
        watchdog_interval=0.05,
        timeout=0.2,
        registry=ProcessRegistry(),
    )

    started = time.monotonic()
    with pytest.raises(DeadlineExceeded):
        supervisor.run()
    assert time.monotonic() - started < 5


def test_registry_terminates_running_processes(run_log):
    registry = ProcessRegistry()
    sleeper = subprocess.Popen(_python("import time; time.sleep(30)"))
    finished = subprocess.Popen(_python("pass"))
    finished.wait()
    registry.register(sleeper)
    registry.register(finished)

    assert registry.terminate_all(run_log=run_log) == 1
    assert sleeper.poll() is not None
    assert registry.terminate_all(run_log=run_log) == 0
    assert not run_log.error_log.exists()


def test_process_launched_after_terminate_all_is_killed():
    registry = ProcessRegistry()
    registry.terminate_all()
    supervisor = ProcessSupervisor(
        _python("import time; time.sleep(30)"),
        watchdog_interval=0.05,
        registry=registry,
    )

    started = time.monotonic()
    with pytest.raises(JobCancelled):
        supervisor.run()

    assert time.monotonic() - started < 5
    assert supervisor.state is JobState.FAILED
    assert registry.closed
    assert registry.running() == []


def test_pid_alive():
    child = subprocess.Popen(_python("pass"))
    child.wait()

    assert system_util.pid_alive(child.pid) is False
    assert system_util.pid_alive(os.getpid()) is True
