"""Hand-off protocol: terminate the CLI in its pane and relaunch it in place.

Steps for one RELAY_READY signal:
1. re-check that the handoff file exists
2. acknowledge, then interrupt the pane twice
3. poll the pane until it shows an idle shell prompt
4. type the relaunch command with the continuation prompt
5. archive the handoff file

A failure after step 2 leaves the pane at whatever state the interrupt
produced; the operator may have to relaunch the CLI by hand unless
`fallback_relaunch` is enabled.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..contracts.v1 import RelaySignal, SignalType
from ..errors import HandoffFileMissingError, RelayError
from ..kernel.ack import write_ack
from ..kernel.archive import archive_handoff
from ..kernel.readiness import PromptStrategy, strategy_for, wait_for_shell_ready
from ..kernel.settings import RelaySettings
from ..paths import HOME_ENV, RelayPaths
from ..runners.tmux import command_line
from ..wrapper import HANDOFF_ENV, RESUME_ENV

logger = logging.getLogger("symphony_relay.handoff")

CAPTURE_LINES = 3


@dataclass
class HandoffResult:
    ok: bool
    stage: str
    error: str = ""
    archive_path: Optional[Path] = None
    interrupted: bool = False


class HandoffHandler:
    def __init__(
        self,
        paths: RelayPaths,
        panes: Any,
        settings: Optional[RelaySettings] = None,
        *,
        strategy: Optional[PromptStrategy] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.paths = paths
        self.panes = panes
        self.settings = settings or RelaySettings()
        self.strategy = strategy or strategy_for(self.settings.shell_family)
        self._sleep = sleep
        self._monotonic = monotonic

    def relaunch_argv(self, handoff_path: str) -> List[str]:
        s = self.settings
        return [*s.cli_argv(), *s.continue_args, s.render_prompt(handoff_path)]

    def relaunch_env(self, handoff_path: str) -> Dict[str, str]:
        # The pane shell never saw the wrapper's environment.
        return {
            HOME_ENV: str(self.paths.base_dir),
            HANDOFF_ENV: str(handoff_path),
            RESUME_ENV: "true",
        }

    def relaunch_command(self, handoff_path: str) -> str:
        return command_line(self.relaunch_argv(handoff_path), self.relaunch_env(handoff_path))

    def __call__(self, signal: RelaySignal) -> HandoffResult:
        return self.handle(signal)

    def handle(self, signal: RelaySignal) -> HandoffResult:
        logger.info(f"Received signal: {signal.type.value}")
        if signal.type != SignalType.READY:
            logger.warning(f"Ignoring signal type: {signal.type.value}")
            return HandoffResult(ok=False, stage="ignored", error=f"unexpected signal {signal.type.value}")

        logger.info("Processing relay request")
        logger.info(f"  Source pane: {signal.pane_id}")
        if not signal.handoff_exists():
            err = HandoffFileMissingError(signal.handoff_path)
            logger.error(str(err))
            return HandoffResult(ok=False, stage="validate", error=str(err))
        logger.info(f"  Handoff file: {signal.handoff_path}")

        self._acknowledge(signal)

        result = HandoffResult(ok=False, stage="interrupt")
        try:
            self._terminate(signal.pane_id)
            result.interrupted = True

            result.stage = "readiness"
            wait_for_shell_ready(
                signal.pane_id,
                lambda pane: self.panes.capture_pane(pane, CAPTURE_LINES),
                self.strategy,
                timeout_s=self.settings.readiness_timeout_s,
                poll_interval_s=self.settings.poll_interval_s,
                settle_s=self.settings.settle_delay_s,
                sleep=self._sleep,
                monotonic=self._monotonic,
            )

            result.stage = "relaunch"
            self._relaunch(signal.pane_id, signal.handoff_path)
        except RelayError as e:
            result.error = str(e)
            logger.error(f"Session handoff failed ({result.stage}): {e}")
            if result.interrupted:
                self._fallback(signal.pane_id)
            return result
        except Exception as e:
            result.error = str(e)
            logger.exception(f"Session handoff failed ({result.stage}): {e}")
            if result.interrupted:
                self._fallback(signal.pane_id)
            return result

        logger.info("Session handoff complete via new CLI process")
        result.ok = True
        result.stage = "done"
        result.archive_path = self._archive(Path(signal.handoff_path))
        return result

    def _acknowledge(self, signal: RelaySignal) -> None:
        try:
            write_ack(self.paths.ack_path, signal)
        except OSError as e:
            logger.warning(f"Failed to write ACK to {self.paths.ack_path}: {e}")

    def _terminate(self, pane_id: str) -> None:
        logger.info(f"Terminating CLI session in pane {pane_id}")
        delays = list(self.settings.interrupt_delays_s or [])
        # Two interrupts: a confirmation prompt may swallow the first one.
        for i in range(2):
            self.panes.send_interrupt(pane_id)
            delay = delays[i] if i < len(delays) else 0.0
            if delay > 0:
                self._sleep(delay)
        logger.info("CLI session interrupted")

    def _relaunch(self, pane_id: str, handoff_path: str) -> None:
        cmd = self.relaunch_command(handoff_path)
        logger.info(f"Starting new CLI session in pane {pane_id}")
        logger.debug(f"Command: {cmd}")
        self.panes.send_keys(pane_id, cmd)
        logger.info("New CLI session started with handoff prompt")

    def _fallback(self, pane_id: str) -> None:
        if not self.settings.fallback_relaunch:
            logger.warning(f"Pane {pane_id} may be left at a bare shell; relaunch the CLI manually")
            return
        cmd = command_line(self.settings.cli_argv(), {HOME_ENV: str(self.paths.base_dir)})
        try:
            self.panes.send_keys(pane_id, cmd)
            logger.warning(f"Fallback relaunch sent to pane {pane_id}: {cmd}")
        except Exception as e:
            logger.error(f"Fallback relaunch failed for pane {pane_id}: {e}")

    def _archive(self, handoff_path: Path) -> Optional[Path]:
        try:
            dest = archive_handoff(handoff_path, self.paths.archive_dir)
        except OSError as e:
            logger.warning(f"Failed to archive handoff: {e}")
            return None
        logger.info(f"Handoff archived to {dest}")
        return dest
