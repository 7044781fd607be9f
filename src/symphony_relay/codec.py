"""Wire codec for relay signals.

One line per signal: `TYPE:handoff_path:pane_id`. Fields are not escaped;
the pane id is everything after the last `:`, so a `:` inside the pane id
corrupts parsing.
"""
from __future__ import annotations

import re
from typing import Optional

from pydantic import ValidationError

from .contracts.v1 import RelaySignal, SignalType
from .errors import MalformedSignalError

_SIGNAL_RE = re.compile(r"^(RELAY_READY|RELAY_ACK):(.+):(.+)$")


def encode(signal: RelaySignal) -> str:
    return f"{signal.type.value}:{signal.handoff_path}:{signal.pane_id}"


def decode(line: str) -> Optional[RelaySignal]:
    m = _SIGNAL_RE.match((line or "").strip())
    if not m:
        return None
    try:
        return RelaySignal(type=SignalType(m.group(1)), handoff_path=m.group(2), pane_id=m.group(3))
    except (ValueError, ValidationError):
        return None


def decode_strict(line: str) -> RelaySignal:
    sig = decode(line)
    if sig is None:
        raise MalformedSignalError(f"malformed relay signal: {line!r}")
    return sig
