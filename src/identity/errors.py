"""
Exceptions raised while processing dropped media.

Every job-level failure derives from `IdentityError`. The worker pool turns
these into failed job results, so none of them ever escapes a job. Only a
`PreconditionFailure` raised before the first phase (missing watermark)
aborts a whole run.
"""
from typing import List, Optional


class IdentityError(Exception):
    """Base class for all processing errors."""


class PreconditionFailure(IdentityError):
    """A required file (watermark asset or input) does not exist."""


class MetadataUnavailable(IdentityError):
    """ffprobe or the image library returned output that could not be parsed."""


class ExternalProcessFailed(IdentityError):
    """An external process exited with a non-zero status."""

    def __init__(self, exit_code: int, cmd: Optional[List[str]] = None, stderr_tail: str = ""):
        self.exit_code = exit_code
        self.cmd = cmd
        self.stderr_tail = stderr_tail
        program = cmd[0] if cmd else "process"
        super().__init__(f"{program} failed with exit code {exit_code}")


class WatchdogTermination(IdentityError):
    """The child was killed because the supervising process went away."""


class DeadlineExceeded(IdentityError):
    """The child was killed because it ran past its job deadline."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"process exceeded its {timeout:g}s deadline")


class JobCancelled(IdentityError):
    """The run is shutting down; a process launched now is killed at once."""
