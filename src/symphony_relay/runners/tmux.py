from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..errors import PaneOperationError

logger = logging.getLogger("symphony_relay.tmux")

WINDOW_NAME = "symphony"


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except Exception as e:
        return 1, "", str(e)


class TmuxPaneController:
    """tmux primitives used by the daemon and the session bootstrapper."""

    def __init__(self, *, timeout_s: float = 3.0) -> None:
        self.timeout_s = timeout_s

    def _tmux(self, *args: str) -> str:
        code, out, err = _run_tmux(list(args), timeout_s=self.timeout_s)
        if code != 0:
            logger.debug(f"tmux {' '.join(args)} -> {code}: {err.strip()}")
            raise PaneOperationError(f"tmux {args[0]} failed: {(err or '').strip() or f'exit {code}'}")
        return out

    def has_session(self, name: str) -> bool:
        code, _, _ = _run_tmux(["has-session", "-t", name], timeout_s=self.timeout_s)
        return code == 0

    def create_session(self, name: str, work_dir: Path) -> Tuple[str, str]:
        """Detached session, one window split 50/50.

        Returns (orchestrator_pane, cli_pane) as tmux pane ids. The left
        pane hosts the daemon, the right pane hosts the AI CLI.
        """
        cwd = str(Path(work_dir).expanduser().resolve())
        out = self._tmux(
            "new-session", "-d", "-P", "-F", "#{pane_id}",
            "-s", name, "-n", WINDOW_NAME, "-c", cwd, "-x", "200", "-y", "50",
        )
        right = out.strip()
        # -b puts the new pane on the left of the first one.
        out = self._tmux(
            "split-window", "-h", "-b", "-P", "-F", "#{pane_id}",
            "-t", right, "-p", "50", "-c", cwd,
        )
        left = out.strip()
        if not left or not right:
            raise PaneOperationError(f"tmux did not report pane ids for session {name}")

        self._tmux("select-pane", "-t", left, "-T", "Orchestrator")
        self._tmux("select-pane", "-t", right, "-T", "Claude")
        self._tmux("set-option", "-t", name, "pane-border-status", "top")
        self._tmux("set-option", "-t", name, "pane-border-format", " #{pane_title} ")
        return left, right

    def send_keys(self, pane_id: str, text: str) -> None:
        """Type text into the pane and press Enter.

        There is no feedback on whether the running program consumed it.
        """
        self._tmux("send-keys", "-t", pane_id, "-l", text)
        self._tmux("send-keys", "-t", pane_id, "Enter")

    def send_interrupt(self, pane_id: str) -> None:
        self._tmux("send-keys", "-t", pane_id, "C-c")

    def capture_pane(self, pane_id: str, lines: int = 3) -> List[str]:
        out = self._tmux("capture-pane", "-t", pane_id, "-p", "-S", f"-{int(lines)}")
        return out.rstrip("\n").splitlines()

    def select_pane(self, pane_id: str) -> None:
        self._tmux("select-pane", "-t", pane_id)

    def kill_session(self, name: str) -> None:
        self._tmux("kill-session", "-t", name)

    def attach_session(self, name: str) -> int:
        """Attach the calling terminal; returns once the operator detaches."""
        try:
            p = subprocess.run(["tmux", "attach-session", "-t", name], check=False)
        except OSError as e:
            raise PaneOperationError(f"tmux attach-session failed: {e}") from e
        return int(p.returncode)


def current_pane_id(env: Optional[dict] = None) -> Optional[str]:
    src = os.environ if env is None else env
    pane = str(src.get("TMUX_PANE") or "").strip()
    return pane or None


def _env_prefix(env: Dict[str, str]) -> str:
    parts = []
    for k, v in env.items():
        if not k.strip() or not isinstance(v, str):
            continue
        parts.append(f"{k.strip()}={shlex.quote(v)}")
    return ("env " + " ".join(parts) + " ") if parts else ""


def command_line(argv: List[str], env: Optional[Dict[str, str]] = None) -> str:
    """Shell line for send_keys: `env K=V ... argv`, every word quoted."""
    return _env_prefix(env or {}) + " ".join(shlex.quote(x) for x in argv)
