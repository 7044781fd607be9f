from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .kernel.settings import RelaySettings, load_settings
from .paths import HOME_ENV, RelayPaths, load_paths

logger = logging.getLogger("symphony_relay.wrapper")

HANDOFF_ENV = "MEMORY_RELAY_HANDOFF"
RESUME_ENV = "MEMORY_RELAY_RESUME"

RELAY_BANNER = """
+============================================================+
|              Claude Symphony - Encore Mode                 |
+============================================================+
|  Automatic session handoff when context runs low           |
|  Signal with: symphony-relay signal <handoff.md>           |
+============================================================+
"""


def resume_banner(handoff: Path) -> str:
    return (
        "\n+============================================================+\n"
        "|                  Resuming from Handoff                     |\n"
        "+============================================================+\n"
        f"|  Handoff: {handoff}\n"
        "+============================================================+\n"
    )


def build_cli_argv(settings: RelaySettings, *, bypass: bool = False, handoff: Optional[Path] = None) -> List[str]:
    """Command line for the CLI pane; a handoff file becomes the first prompt."""
    argv = settings.cli_argv(bypass=bypass)
    if handoff is not None:
        argv.append(settings.render_prompt(str(handoff)))
    return argv


def run_wrapper(
    handoff: Optional[Path] = None,
    *,
    bypass: bool = False,
    paths: Optional[RelayPaths] = None,
    settings: Optional[RelaySettings] = None,
    execvpe: Callable[[str, Sequence[str], dict], object] = os.execvpe,
) -> int:
    """Replace this process with the AI CLI. Returns only if exec fails."""
    p = paths or load_paths()
    s = settings or load_settings(p.settings_path)
    env = os.environ.copy()
    env[HOME_ENV] = str(p.base_dir)

    resume = None
    if handoff is not None:
        candidate = Path(handoff).expanduser().absolute()
        if candidate.is_file():
            resume = candidate
        else:
            logger.warning(f"Handoff file not found, starting fresh: {candidate}")

    if resume is not None:
        print(resume_banner(resume))
        env[HANDOFF_ENV] = str(resume)
        env[RESUME_ENV] = "true"
        logger.info(f"Starting CLI with handoff resume: {resume}")
    else:
        logger.info("Starting fresh CLI session with relay support")
    print(RELAY_BANNER)

    argv = build_cli_argv(s, bypass=bypass, handoff=resume)
    try:
        execvpe(argv[0], argv, env)
    except OSError as e:
        logger.error(f"Failed to start {argv[0]}: {e}")
        return 127
    return 0
