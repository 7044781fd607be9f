"""Shell-prompt readiness detection for tmux panes.

After the AI CLI is interrupted, the pane should drop back to an idle
shell. There is no real synchronization point for that, so the pane's
rendered output is polled and the last non-blank line is matched against
a per-shell-family prompt pattern.
"""
from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..errors import ReadinessTimeoutError

logger = logging.getLogger("symphony_relay.readiness")

CaptureFn = Callable[[str], Sequence[str]]


def last_non_blank(lines: Iterable[str]) -> Optional[str]:
    last = None
    for ln in lines:
        if ln.strip():
            last = ln
    return last


@dataclass(frozen=True)
class PromptStrategy:
    """Prompt detection for one shell family."""

    name: str
    terminators: str = ""
    pattern: Optional[str] = None

    def matches(self, line: str) -> bool:
        s = line.rstrip()
        if not s:
            return False
        if self.pattern is not None:
            return re.search(self.pattern, s) is not None
        return s[-1] in self.terminators

    def is_ready(self, lines: Sequence[str]) -> bool:
        line = last_non_blank(lines)
        return line is not None and self.matches(line)


POSIX = PromptStrategy(name="posix", terminators="$%#>")
ZSH = PromptStrategy(name="zsh", terminators="%#$>❯")
FISH = PromptStrategy(name="fish", terminators=">❯#")
POWERSHELL = PromptStrategy(name="powershell", pattern=r"^PS .*>$")

STRATEGIES: Dict[str, PromptStrategy] = {s.name: s for s in (POSIX, ZSH, FISH, POWERSHELL)}

_SHELL_FAMILIES = {
    "sh": "posix",
    "bash": "posix",
    "dash": "posix",
    "ksh": "posix",
    "zsh": "zsh",
    "fish": "fish",
    "pwsh": "powershell",
    "powershell": "powershell",
}


def strategy_for(shell_family: str = "auto", *, shell: Optional[str] = None) -> PromptStrategy:
    """Resolve a strategy by family name; `auto` looks at $SHELL."""
    fam = str(shell_family or "auto").strip().lower()
    if fam != "auto":
        s = STRATEGIES.get(fam)
        if s is None:
            logger.warning(f"Unknown shell family {fam!r}, using posix prompt detection")
            return POSIX
        return s
    sh = shell if shell is not None else os.environ.get("SHELL", "")
    name = Path(sh).name if sh else ""
    return STRATEGIES.get(_SHELL_FAMILIES.get(name, "posix"), POSIX)


def wait_for_shell_ready(
    pane_id: str,
    capture: CaptureFn,
    strategy: PromptStrategy = POSIX,
    *,
    timeout_s: float = 10.0,
    poll_interval_s: float = 0.3,
    settle_s: float = 0.3,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> int:
    """Poll capture(pane_id) until the prompt strategy matches.

    Returns the number of samples taken. Capture errors count as a miss and
    polling continues until the deadline. Raises ReadinessTimeoutError.
    """
    logger.info(f"Waiting for shell prompt in pane {pane_id} (timeout: {timeout_s:g}s)")
    start = monotonic()
    samples = 0
    while True:
        samples += 1
        lines: List[str] = []
        try:
            lines = list(capture(pane_id))
        except Exception as e:
            logger.debug(f"capture-pane failed for {pane_id}: {e}")
        if strategy.is_ready(lines):
            if settle_s > 0:
                sleep(settle_s)
            logger.info("Shell prompt is ready")
            return samples
        if monotonic() - start + poll_interval_s > timeout_s:
            raise ReadinessTimeoutError(pane_id, timeout_s)
        sleep(poll_interval_s)
