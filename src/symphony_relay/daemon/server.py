from __future__ import annotations

import atexit
import logging
import os
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional

from .. import channel
from ..contracts.v1 import RelaySignal
from ..errors import AlreadyRunningError
from ..kernel.archive import list_archives
from ..kernel.settings import RelaySettings, load_settings
from ..paths import HOME_ENV, RelayPaths, load_paths
from ..runners.tmux import TmuxPaneController
from ..util.fs import atomic_write_text, tail_lines, unlink_quiet
from .handoff import HandoffHandler

logger = logging.getLogger("symphony_relay.daemon")

RECENT_LOG_LINES = 5


class DaemonState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    LISTENING = "listening"
    HANDLING = "handling"
    STOPPING = "stopping"


class DaemonStopped(BaseException):
    """Raised from the termination signal handler to leave the read loop.

    BaseException so per-signal error handling does not swallow it.
    """


@dataclass
class DaemonRecord:
    pid: int
    started_at: Optional[datetime] = None


@dataclass
class RelayStatus:
    running: bool
    pid: Optional[int]
    stale: bool
    channel_exists: bool
    base_dir: Path
    pipe_path: Path
    recent_logs: List[str] = field(default_factory=list)
    archives: List[Path] = field(default_factory=list)


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except PermissionError:
        return True
    except Exception:
        return False


def read_record(pid_file: Path) -> Optional[DaemonRecord]:
    try:
        txt = pid_file.read_text(encoding="utf-8").strip()
        started = datetime.fromtimestamp(pid_file.stat().st_mtime)
    except OSError:
        return None
    if not txt.isdigit():
        return DaemonRecord(pid=0, started_at=started)
    return DaemonRecord(pid=int(txt), started_at=started)


def write_record(pid_file: Path, pid: Optional[int] = None) -> DaemonRecord:
    pid = os.getpid() if pid is None else int(pid)
    atomic_write_text(pid_file, f"{pid}\n")
    return DaemonRecord(pid=pid, started_at=datetime.now())


class Orchestrator:
    """The relay daemon.

    One instance per relay base directory. The read loop calls the
    handoff handler inline, so signals are handled strictly one at a time.
    """

    def __init__(
        self,
        paths: Optional[RelayPaths] = None,
        *,
        settings: Optional[RelaySettings] = None,
        panes: Any = None,
        handler: Optional[Callable[[RelaySignal], Any]] = None,
    ) -> None:
        self.paths = paths or load_paths()
        self.settings = settings or load_settings(self.paths.settings_path)
        self.panes = panes or TmuxPaneController()
        self.handler = handler or HandoffHandler(self.paths, self.panes, self.settings)
        self.state = DaemonState.STOPPED
        self.handled = 0
        self.failed = 0
        self._reader: Optional[channel.FifoReader] = None
        self._serve_thread: Optional[threading.Thread] = None
        self._owns_record = False
        self._cleaned = threading.Event()
        self._channel_ino: Optional[int] = None

    # --- lifecycle records ---

    def check_running(self) -> Optional[DaemonRecord]:
        """Live record, or None. A stale PID file is removed."""
        rec = read_record(self.paths.pid_file)
        if rec is None:
            return None
        if pid_alive(rec.pid):
            return rec
        logger.info("Removing stale PID file")
        unlink_quiet(self.paths.pid_file)
        return None

    def status(self) -> RelayStatus:
        p = self.paths
        rec = read_record(p.pid_file)
        running = rec is not None and pid_alive(rec.pid)
        return RelayStatus(
            running=running,
            pid=rec.pid if rec is not None and rec.pid > 0 else None,
            stale=rec is not None and not running,
            channel_exists=channel.is_fifo(p.pipe_path),
            base_dir=p.base_dir,
            pipe_path=p.pipe_path,
            recent_logs=tail_lines(p.log_file, RECENT_LOG_LINES),
            archives=list_archives(p.archive_dir),
        )

    # --- start ---

    def prepare(self, *, install_signal_handlers: bool = True) -> DaemonRecord:
        """Everything start() does before entering the read loop."""
        live = self.check_running()
        if live is not None:
            logger.warning(f"Orchestrator already running (PID: {live.pid})")
            raise AlreadyRunningError(live.pid)

        self.state = DaemonState.STARTING
        try:
            self.paths.ensure_dirs()
            channel.create(self.paths.pipe_path)
            self._channel_ino = os.stat(str(self.paths.pipe_path)).st_ino
        except Exception:
            self.state = DaemonState.STOPPED
            raise
        rec = write_record(self.paths.pid_file)
        self._owns_record = True
        self._cleaned.clear()
        logger.info(f"Orchestrator starting (PID: {rec.pid})")

        atexit.register(self.cleanup)
        if install_signal_handlers:
            signal.signal(signal.SIGTERM, self._on_termination)
            signal.signal(signal.SIGINT, self._on_termination)
        return rec

    def start(self) -> int:
        try:
            self.prepare()
            self.serve()
        except DaemonStopped:
            logger.info("Termination requested before the read loop started")
        finally:
            self.cleanup()
        return 0

    def _on_termination(self, signum: int, frame: Any) -> None:
        self.state = DaemonState.STOPPING
        if self._reader is not None:
            self._reader.request_stop()
        raise DaemonStopped(signum)

    def _dispatch(self, sig: RelaySignal) -> None:
        self.state = DaemonState.HANDLING
        try:
            result = self.handler(sig)
            ok = bool(getattr(result, "ok", True))
            if ok:
                self.handled += 1
            else:
                self.failed += 1
        except Exception as e:
            self.failed += 1
            logger.exception(f"Failed to handle relay signal: {e}")
        finally:
            if self.state == DaemonState.HANDLING:
                self.state = DaemonState.LISTENING

    def _on_reader_error(self, err: BaseException) -> None:
        logger.error(f"FIFO reader error: {err}")

    def serve(self) -> None:
        """Block in the read loop until stopped."""
        logger.info("Orchestrator main loop started")
        logger.info(f"Listening on FIFO: {self.paths.pipe_path}")
        reader = self._make_reader()
        self.state = DaemonState.LISTENING
        try:
            reader.run()
        except (DaemonStopped, KeyboardInterrupt):
            pass

    def _make_reader(self) -> channel.FifoReader:
        if self._reader is None:
            self._reader = channel.FifoReader(self.paths.pipe_path, self._dispatch, self._on_reader_error)
        return self._reader

    def serve_in_background(self) -> threading.Thread:
        self._make_reader()
        t = threading.Thread(target=self.serve, name="relay-orchestrator", daemon=True)
        t.start()
        self._serve_thread = t
        return t

    def shutdown(self) -> None:
        """Stop a loop running in this process (tests, embedding)."""
        self.state = DaemonState.STOPPING
        if self._reader is not None:
            self._reader.stop()
        t = self._serve_thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=2.0)
        self.cleanup()

    def _owns_channel(self) -> bool:
        if self._channel_ino is None or not channel.is_fifo(self.paths.pipe_path):
            return False
        try:
            return os.stat(str(self.paths.pipe_path)).st_ino == self._channel_ino
        except OSError:
            return False

    def cleanup(self) -> None:
        """Remove this daemon's PID file and channel. Never touches tmux sessions."""
        if self._cleaned.is_set() or not self._owns_record:
            return
        self._cleaned.set()
        logger.info("Orchestrator shutting down...")
        rec = read_record(self.paths.pid_file)
        if rec is not None and rec.pid == os.getpid():
            unlink_quiet(self.paths.pid_file)
        if self._owns_channel():
            channel.remove(self.paths.pipe_path)
        elif channel.is_fifo(self.paths.pipe_path):
            logger.info("FIFO was replaced by another instance; leaving it in place")
        self._channel_ino = None
        self._owns_record = False
        self.state = DaemonState.STOPPED

    # --- stop / restart ---

    def stop(self) -> str:
        rec = read_record(self.paths.pid_file)
        if rec is None:
            return "Orchestrator not running"
        if pid_alive(rec.pid):
            logger.info(f"Stopping Orchestrator (PID: {rec.pid})")
            try:
                os.kill(rec.pid, signal.SIGTERM)
            except OSError as e:
                logger.warning(f"Failed to signal PID {rec.pid}: {e}")
            unlink_quiet(self.paths.pid_file)
            return "Orchestrator stopped"
        unlink_quiet(self.paths.pid_file)
        return "Orchestrator not running (stale PID)"

    def restart(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        report: Optional[Callable[[str], Any]] = None,
    ) -> int:
        """stop(), a short pause, then start(). Not atomic."""
        msg = self.stop()
        if report is not None:
            report(msg)
        sleep(self.settings.restart_delay_s)
        return self.start()


def spawn_detached(paths: RelayPaths) -> int:
    """Run `daemon start` in the background with output appended to the log."""
    paths.log_dir.mkdir(parents=True, exist_ok=True)
    env = os.environ.copy()
    env[HOME_ENV] = str(paths.base_dir)
    with paths.log_file.open("a", encoding="utf-8") as log_f:
        p = subprocess.Popen(
            [sys.executable, "-m", "symphony_relay.daemon_main", "start", "--quiet"],
            stdout=log_f,
            stderr=log_f,
            stdin=subprocess.DEVNULL,
            env=env,
            start_new_session=True,
            cwd=str(Path.cwd()),
        )
    return int(p.pid)
