from __future__ import annotations

import logging
import os
import stat
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from .codec import decode
from .contracts.v1 import RelaySignal
from .errors import ChannelUnavailableError

logger = logging.getLogger("symphony_relay.channel")

PathLike = Union[str, Path]
SignalCallback = Callable[[RelaySignal], None]
ErrorCallback = Callable[[BaseException], None]

REOPEN_AFTER_EOF_S = 0.1
REOPEN_AFTER_ERROR_S = 0.5


def is_fifo(path: PathLike) -> bool:
    try:
        return stat.S_ISFIFO(os.stat(str(path)).st_mode)
    except Exception:
        return False


def create(path: PathLike) -> Path:
    """(Re)create the named pipe at path with owner-only permissions."""
    p = Path(path)
    if not p.parent.is_dir():
        raise ChannelUnavailableError(f"channel directory does not exist: {p.parent}")
    mkfifo = getattr(os, "mkfifo", None)
    if mkfifo is None:
        raise ChannelUnavailableError("named pipes are not supported on this platform")
    try:
        if p.is_symlink() or p.exists():
            p.unlink()
        mkfifo(str(p), 0o600)
        os.chmod(str(p), 0o600)
    except OSError as e:
        raise ChannelUnavailableError(f"Failed to create FIFO at {p}: {e}") from e
    return p


def remove(path: PathLike) -> bool:
    try:
        Path(path).unlink()
        return True
    except OSError:
        return False


def write(message: str, path: PathLike) -> None:
    """Write one line to the channel.

    Blocks until a reader has the pipe open.
    """
    if not is_fifo(path):
        raise ChannelUnavailableError(f"FIFO not found at {path}")
    try:
        with open(str(path), "w", encoding="utf-8") as f:
            f.write(message + "\n")
    except OSError as e:
        raise ChannelUnavailableError(f"Failed to write to FIFO {path}: {e}") from e


class FifoReader:
    """Long-lived line reader for the channel.

    Each writer disconnect ends the read with EOF, so the pipe is reopened
    after every batch. Callbacks run inline: the next line is not read until
    on_signal returns.
    """

    def __init__(
        self,
        path: PathLike,
        on_signal: SignalCallback,
        on_error: Optional[ErrorCallback] = None,
        *,
        reopen_after_eof_s: float = REOPEN_AFTER_EOF_S,
        reopen_after_error_s: float = REOPEN_AFTER_ERROR_S,
    ) -> None:
        self.path = Path(path)
        self._on_signal = on_signal
        self._on_error = on_error
        self._reopen_after_eof_s = reopen_after_eof_s
        self._reopen_after_error_s = reopen_after_error_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _report(self, err: BaseException) -> None:
        if self._on_error is None:
            logger.error(f"FIFO reader error: {err}")
            return
        try:
            self._on_error(err)
        except Exception:
            logger.exception("FIFO reader error callback failed")

    def _dispatch(self, line: str) -> None:
        raw = line.strip()
        if not raw:
            return
        sig = decode(raw)
        if sig is None:
            logger.debug(f"Dropping malformed signal line: {raw!r}")
            return
        try:
            self._on_signal(sig)
        except Exception as e:
            self._report(e)

    def run(self) -> None:
        """Read until stop() is called."""
        if self._thread is None:
            self._thread = threading.current_thread()
        while not self._stop.is_set():
            try:
                with open(str(self.path), "r", encoding="utf-8", errors="replace") as f:
                    for line in f:
                        if self._stop.is_set():
                            break
                        self._dispatch(line)
            except OSError as e:
                if self._stop.is_set():
                    break
                self._report(e)
                self._stop.wait(self._reopen_after_error_s)
                continue
            if not self._stop.is_set():
                logger.debug("FIFO read returned EOF, reopening")
                self._stop.wait(self._reopen_after_eof_s)

    def start(self) -> "FifoReader":
        """Run the loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="relay-fifo-reader", daemon=True)
        self._thread.start()
        return self

    def request_stop(self) -> None:
        """Flag the loop to exit after the current line; safe in signal handlers."""
        self._stop.set()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        t = self._thread
        if t is None or t is threading.current_thread():
            self._wake()
            return
        # The loop may reach open() after the first wake; keep waking until it exits.
        deadline = time.monotonic() + timeout_s
        while t.is_alive() and time.monotonic() < deadline:
            self._wake()
            t.join(timeout=0.1)

    def _wake(self) -> None:
        # A reader blocked in open() returns once a writer attaches and leaves.
        try:
            fd = os.open(str(self.path), os.O_WRONLY | os.O_NONBLOCK)
        except OSError:
            return
        try:
            os.write(fd, b"\n")
        except OSError:
            pass
        finally:
            os.close(fd)


def start_reader(
    path: PathLike,
    on_signal: SignalCallback,
    on_error: Optional[ErrorCallback] = None,
) -> FifoReader:
    return FifoReader(path, on_signal, on_error).start()
