from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

HOME_ENV = "SYMPHONY_RELAY_HOME"
LOCAL_DIR_NAME = ".symphony-relay"
LOCAL_MARKER = "config.yaml"


@dataclass(frozen=True)
class RelayPaths:
    base_dir: Path

    @property
    def orchestrator_dir(self) -> Path:
        return self.base_dir / "orchestrator"

    @property
    def signals_dir(self) -> Path:
        return self.orchestrator_dir / "signals"

    @property
    def pipe_path(self) -> Path:
        return self.signals_dir / "relay.fifo"

    @property
    def ack_path(self) -> Path:
        return self.signals_dir / "relay.ack"

    @property
    def pid_file(self) -> Path:
        return self.orchestrator_dir / "orchestrator.pid"

    @property
    def log_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def log_file(self) -> Path:
        return self.log_dir / "orchestrator.log"

    @property
    def relay_log_file(self) -> Path:
        return self.log_dir / "relay.log"

    @property
    def archive_dir(self) -> Path:
        return self.base_dir / "handoffs"

    @property
    def settings_path(self) -> Path:
        return self.base_dir / "settings.yaml"

    def ensure_dirs(self) -> None:
        for d in (self.signals_dir, self.log_dir, self.archive_dir):
            d.mkdir(parents=True, exist_ok=True)


def resolve_base_dir(project_dir: Optional[Path] = None) -> Path:
    """Pick the relay base directory.

    Order: $SYMPHONY_RELAY_HOME, a project-local `.symphony-relay/config.yaml`
    under project_dir (default: cwd), then ~/.claude/memory-relay.
    """
    env = os.environ.get(HOME_ENV, "").strip()
    if env:
        base = Path(env).expanduser()
    else:
        base = None
        try:
            local = Path(project_dir or Path.cwd()) / LOCAL_DIR_NAME
            if (local / LOCAL_MARKER).is_file():
                base = local
        except OSError:
            base = None
        if base is None:
            try:
                base = Path.home() / ".claude" / "memory-relay"
            except (RuntimeError, KeyError) as e:
                raise ConfigurationError(f"cannot resolve home directory: {e}") from e

    try:
        base = base.resolve()
    except (OSError, RuntimeError) as e:
        raise ConfigurationError(f"cannot resolve relay base directory {base}: {e}") from e
    if base.exists() and not base.is_dir():
        raise ConfigurationError(f"relay base is not a directory: {base}")
    return base


_CACHED: Optional[RelayPaths] = None


def load_paths(project_dir: Optional[Path] = None) -> RelayPaths:
    """Process-wide paths, computed on first use."""
    global _CACHED
    if _CACHED is None:
        _CACHED = RelayPaths(base_dir=resolve_base_dir(project_dir))
    return _CACHED


def reset_paths() -> None:
    global _CACHED
    _CACHED = None
