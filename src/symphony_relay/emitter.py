"""Client side of the relay: runs inside the AI CLI's pane.

The AI session calls `symphony-relay signal <handoff.md>` when its context
is running low. The signal is written to the channel and the daemon's ACK
status file is awaited, bounded by `ack_timeout_s`.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from . import channel
from .codec import encode
from .contracts.v1 import RelaySignal, SignalType
from .errors import ChannelUnavailableError, HandoffFileMissingError
from .kernel.ack import clear_ack, wait_for_ack
from .kernel.settings import RelaySettings, load_settings
from .paths import RelayPaths, load_paths
from .runners.tmux import current_pane_id

logger = logging.getLogger("symphony_relay.emitter")

DEFAULT_HANDOFF_NAME = "HANDOFF.md"
UNKNOWN_PANE = "unknown"


@dataclass
class EmitResult:
    sent: bool
    acknowledged: bool
    message: str
    signal: Optional[RelaySignal] = None

    @property
    def ok(self) -> bool:
        return self.sent


def is_orchestrator_available(paths: Optional[RelayPaths] = None) -> bool:
    p = paths or load_paths()
    return channel.is_fifo(p.pipe_path)


def signal_relay_ready(
    handoff_path: Union[str, Path, None] = None,
    *,
    paths: Optional[RelayPaths] = None,
    settings: Optional[RelaySettings] = None,
    pane_id: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
    writer: Callable[[str, Path], None] = channel.write,
) -> EmitResult:
    p = paths or load_paths()
    s = settings or load_settings(p.settings_path)
    pane = pane_id or current_pane_id() or UNKNOWN_PANE
    target = Path(handoff_path) if handoff_path else Path.cwd() / DEFAULT_HANDOFF_NAME

    try:
        sig = RelaySignal.create(SignalType.READY, target, pane)
    except HandoffFileMissingError as e:
        logger.error(str(e))
        return EmitResult(sent=False, acknowledged=False, message=str(e))

    if not channel.is_fifo(p.pipe_path):
        logger.error(f"FIFO not found at {p.pipe_path}")
        return EmitResult(sent=False, acknowledged=False, message="Orchestrator not running (FIFO missing)", signal=sig)

    logger.info("Sending RELAY_READY signal")
    logger.info(f"  Handoff: {sig.handoff_path}")
    logger.info(f"  Pane: {sig.pane_id}")

    clear_ack(p.ack_path)
    try:
        writer(encode(sig), p.pipe_path)
    except ChannelUnavailableError as e:
        logger.error(f"Failed to send signal: {e}")
        return EmitResult(sent=False, acknowledged=False, message=str(e), signal=sig)

    logger.info(f"Signal sent, awaiting ACK (timeout: {s.ack_timeout_s:g}s)")
    acked = wait_for_ack(
        p.ack_path,
        handoff_path=sig.handoff_path,
        pane_id=sig.pane_id,
        timeout_s=s.ack_timeout_s,
        poll_interval_s=s.ack_poll_interval_s,
        cancel=cancel,
    )
    if acked:
        logger.info("Relay acknowledged; a new session is starting")
        msg = "Relay initiated. New session should be starting. You may now safely exit this session."
    else:
        logger.warning("No ACK from orchestrator before timeout")
        msg = "Signal sent but not acknowledged; check `symphony-relay daemon status`."
    return EmitResult(sent=True, acknowledged=acked, message=msg, signal=sig)
