from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, field_validator

from ...errors import HandoffFileMissingError


class SignalType(str, Enum):
    READY = "RELAY_READY"
    ACK = "RELAY_ACK"


class RelaySignal(BaseModel):
    type: SignalType
    handoff_path: str
    pane_id: str

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("handoff_path", "pane_id")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    @classmethod
    def create(cls, type: SignalType, handoff_path: Union[str, Path], pane_id: str) -> "RelaySignal":
        """Build a signal for an existing handoff file (path made absolute)."""
        p = Path(handoff_path).expanduser().absolute()
        if not p.is_file():
            raise HandoffFileMissingError(str(p))
        return cls(type=type, handoff_path=str(p), pane_id=pane_id)

    def handoff_exists(self) -> bool:
        try:
            return Path(self.handoff_path).is_file()
        except OSError:
            return False
