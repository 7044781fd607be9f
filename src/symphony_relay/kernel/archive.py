from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..util.time import archive_stamp


def archive_handoff(handoff_path: Path, archive_dir: Path, *, now: Optional[datetime] = None) -> Path:
    """Copy a handoff file to archive_dir/handoff_<stamp>.md.

    The source is left untouched. Same-second archives get a numeric suffix.
    """
    archive_dir.mkdir(parents=True, exist_ok=True)
    stamp = archive_stamp(now)
    dest = archive_dir / f"handoff_{stamp}.md"
    n = 2
    while dest.exists():
        dest = archive_dir / f"handoff_{stamp}_{n}.md"
        n += 1
    shutil.copyfile(str(handoff_path), str(dest))
    return dest


def list_archives(archive_dir: Path) -> List[Path]:
    if not archive_dir.is_dir():
        return []
    return sorted(archive_dir.glob("handoff_*.md"))
