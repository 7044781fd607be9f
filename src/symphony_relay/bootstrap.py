"""Create the two-pane tmux session: orchestrator on the left, AI CLI on the right."""
from __future__ import annotations

import logging
import shutil
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .kernel.settings import RelaySettings, load_settings
from .paths import HOME_ENV, RelayPaths, load_paths
from .runners.tmux import TmuxPaneController, command_line

logger = logging.getLogger("symphony_relay.bootstrap")

SESSION_NAME = "symphony-session"
DAEMON_STARTUP_DELAY_S = 1.0


class SessionChoice(str, Enum):
    ATTACH = "attach"
    PARALLEL = "parallel"
    RECREATE = "recreate"
    CANCEL = "cancel"


_CHOICE_KEYS = {
    "1": SessionChoice.ATTACH,
    "2": SessionChoice.PARALLEL,
    "3": SessionChoice.RECREATE,
    "4": SessionChoice.CANCEL,
}


@dataclass
class BootstrapResult:
    session: Optional[str]
    action: str
    orchestrator_pane: Optional[str] = None
    cli_pane: Optional[str] = None


def check_dependencies(
    cli_command: str = "claude",
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Dict[str, bool]:
    return {
        "tmux": which("tmux") is not None,
        "claude": which(cli_command) is not None,
    }


def prompt_session_choice(
    name: str,
    *,
    input_fn: Callable[[str], str] = input,
    out: Any = None,
) -> SessionChoice:
    stream = out or sys.stdout
    print(f"Session '{name}' already exists.", file=stream)
    print("", file=stream)
    print("Options:", file=stream)
    print("  1. Attach to existing session", file=stream)
    print("  2. Create a parallel session", file=stream)
    print("  3. Kill and recreate", file=stream)
    print("  4. Cancel", file=stream)
    print("", file=stream)
    try:
        raw = input_fn("Choice [1/2/3/4]: ")
    except EOFError:
        return SessionChoice.CANCEL
    return _CHOICE_KEYS.get(str(raw or "").strip(), SessionChoice.CANCEL)


def find_free_session_name(base: str, exists: Callable[[str], bool]) -> str:
    """base, base-2, base-3, ... whichever is free first."""
    if not exists(base):
        return base
    n = 2
    while exists(f"{base}-{n}"):
        n += 1
    return f"{base}-{n}"


class SessionBootstrapper:
    def __init__(
        self,
        paths: Optional[RelayPaths] = None,
        *,
        panes: Any = None,
        settings: Optional[RelaySettings] = None,
        choose: Callable[[str], SessionChoice] = prompt_session_choice,
        sleep: Callable[[float], None] = time.sleep,
        python: str = sys.executable,
    ) -> None:
        self.paths = paths or load_paths()
        self.panes = panes or TmuxPaneController()
        self.settings = settings or load_settings(self.paths.settings_path)
        self._choose = choose
        self._sleep = sleep
        self._python = python

    def daemon_command(self) -> str:
        return command_line(
            [self._python, "-m", "symphony_relay.daemon_main", "start"],
            {HOME_ENV: str(self.paths.base_dir)},
        )

    def wrapper_command(self, *, bypass: bool = False, handoff: Optional[Path] = None) -> str:
        argv = [self._python, "-m", "symphony_relay.cli", "wrapper"]
        if bypass:
            argv.append("--bypass")
        if handoff is not None:
            argv.append(str(handoff))
        return command_line(argv, {HOME_ENV: str(self.paths.base_dir)})

    def resolve_session_name(self, base: str = SESSION_NAME) -> Tuple[str, Optional[SessionChoice]]:
        """(name, choice). choice is None when base is free."""
        if not self.panes.has_session(base):
            return base, None
        choice = self._choose(base)
        if choice == SessionChoice.PARALLEL:
            return find_free_session_name(base, self.panes.has_session), choice
        return base, choice

    def start(
        self,
        work_dir: Path,
        *,
        bypass: bool = False,
        handoff: Optional[Path] = None,
        session_name: str = SESSION_NAME,
        attach: bool = True,
    ) -> BootstrapResult:
        name, choice = self.resolve_session_name(session_name)
        if choice == SessionChoice.CANCEL:
            logger.info("Session start cancelled")
            return BootstrapResult(session=None, action="cancelled")
        if choice == SessionChoice.ATTACH:
            if attach:
                self.panes.attach_session(name)
            return BootstrapResult(session=name, action="attached")
        if choice == SessionChoice.RECREATE:
            logger.info(f"Killing existing session {name}")
            self.panes.kill_session(name)

        work = Path(work_dir).expanduser().resolve()
        logger.info(f"Creating session {name} in {work}")
        left, right = self.panes.create_session(name, work)
        self.panes.send_keys(left, self.daemon_command())
        self._sleep(DAEMON_STARTUP_DELAY_S)
        self.panes.send_keys(right, self.wrapper_command(bypass=bypass or self.settings.bypass, handoff=handoff))
        self.panes.select_pane(right)

        action = "recreated" if choice == SessionChoice.RECREATE else "created"
        result = BootstrapResult(session=name, action=action, orchestrator_pane=left, cli_pane=right)
        if attach:
            self.panes.attach_session(name)
        return result
