"""
Utility functions for running system commands and checking process state.

This module provides helper functions to execute external commands, check if
required binaries exist in the system's PATH, and ask the host OS whether a
process id is still alive. ffmpeg and ffprobe are external dependencies, so
their availability is verified before a run starts.

Functions:
    - run_cmd: Executes a system command and returns its exit code along with its
      standard output and error streams.
    - which_or_die: Checks for the presence of a specific binary on the system's
      PATH and terminates the process if it is unavailable.
    - pid_alive: Reports whether a process id still exists on the host.
"""
import shutil
import subprocess
import sys
from typing import Tuple, List, Optional

import psutil

from identity.utils.logger import safe_print


def run_cmd(cmd: List[str], timeout: Optional[float] = None) -> Tuple[int, str, str]:
    """Run a command and return (code, stdout, stderr)."""
    p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
                       errors="replace", timeout=timeout)
    return p.returncode, p.stdout, p.stderr


def which_or_die(binary: str):
    """Check if a binary exists on PATH, exit if not found."""
    if shutil.which(binary) is None:
        safe_print(f"ERROR: '{binary}' not found on PATH. Install it first (e.g. brew install ffmpeg).",
                   file=sys.stderr)
        sys.exit(2)


def pid_alive(pid: int) -> bool:
    """Return True while `pid` refers to a running, non-zombie process."""
    if not psutil.pid_exists(pid):
        return False
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # The process exists but belongs to someone else
        return True
