from __future__ import annotations

from datetime import datetime
from typing import Optional


def archive_stamp(now: Optional[datetime] = None) -> str:
    """Timestamp used in archive file names: 20260131_140509."""
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
