from __future__ import annotations

from .signal import RelaySignal, SignalType

__all__ = [
    "RelaySignal",
    "SignalType",
]
