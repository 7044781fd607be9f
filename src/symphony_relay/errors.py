"""Exception types raised across the relay.

Per-signal failures (missing handoff file, pane errors, readiness timeouts)
are caught by the daemon's read loop; the others are fatal to the command
that raised them.
"""
from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for relay errors."""


class ConfigurationError(RelayError):
    """The relay base directory cannot be resolved."""


class AlreadyRunningError(RelayError):
    def __init__(self, pid: int):
        super().__init__(f"orchestrator already running (PID: {pid})")
        self.pid = pid


class ChannelUnavailableError(RelayError):
    """The named pipe is missing, is not a FIFO, or cannot be created."""


class HandoffFileMissingError(RelayError):
    def __init__(self, path: str):
        super().__init__(f"Handoff file not found: {path}")
        self.path = path


class PaneOperationError(RelayError):
    """A tmux command exited non-zero."""


class ReadinessTimeoutError(RelayError):
    def __init__(self, pane_id: str, timeout_s: float):
        super().__init__(f"Timeout waiting for shell prompt in pane {pane_id} after {timeout_s:g}s")
        self.pane_id = pane_id
        self.timeout_s = timeout_s


class MalformedSignalError(RelayError):
    """A channel line does not decode to a relay signal."""
