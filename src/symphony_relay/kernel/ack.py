"""Acknowledgment status file.

The daemon replaces <signals>/relay.ack with one encoded RELAY_ACK line when
it accepts a READY signal. The emitter waits for a matching line instead of
sleeping for a fixed grace period.
"""
from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Optional

from ..codec import decode, encode
from ..contracts.v1 import RelaySignal, SignalType
from ..util.fs import atomic_write_text, unlink_quiet


def write_ack(path: Path, signal: RelaySignal) -> RelaySignal:
    ack = RelaySignal(type=SignalType.ACK, handoff_path=signal.handoff_path, pane_id=signal.pane_id)
    atomic_write_text(path, encode(ack) + "\n")
    return ack


def read_ack(path: Path) -> Optional[RelaySignal]:
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    sig = decode(raw)
    if sig is None or sig.type != SignalType.ACK:
        return None
    return sig


def clear_ack(path: Path) -> None:
    unlink_quiet(path)


def wait_for_ack(
    path: Path,
    *,
    handoff_path: str,
    pane_id: str,
    timeout_s: float,
    poll_interval_s: float = 0.2,
    cancel: Optional[threading.Event] = None,
    monotonic: Callable[[], float] = time.monotonic,
) -> bool:
    """Wait for an ACK naming handoff_path and pane_id.

    Returns False on timeout or when `cancel` is set.
    """
    stop = cancel or threading.Event()
    deadline = monotonic() + max(0.0, timeout_s)
    while True:
        ack = read_ack(path)
        if ack is not None and ack.handoff_path == handoff_path and ack.pane_id == pane_id:
            return True
        remaining = deadline - monotonic()
        if remaining <= 0 or stop.is_set():
            return False
        if stop.wait(min(poll_interval_s, remaining)):
            return False
