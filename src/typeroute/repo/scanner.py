from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import structlog

from typeroute.repo.ignore import is_ignored_path

logger = structlog.get_logger(__name__)


def scan_source_files(
    root: Path,
    patterns: Iterable[str],
    ignore_dirs: Optional[Iterable[str]] = None,
    max_files: Optional[int] = None,
) -> list[str]:
    """
    Return absolute paths (as strings) of the .py files matching the glob
    patterns under root, e.g. "**/*.py" or "api/controllers/*.py".
    Sorted and de-duplicated; ignored directories are pruned.
    """
    root = Path(root).resolve()
    extra = list(ignore_dirs or ())
    found: set[str] = set()
    for pattern in patterns:
        matched = 0
        for p in root.glob(pattern):
            if not p.is_file() or p.suffix != ".py":
                continue
            if is_ignored_path(p, root, extra):
                continue
            found.add(str(p.resolve()))
            matched += 1
        if matched == 0:
            logger.warning("pattern_matched_nothing", pattern=pattern, root=str(root))

    out = sorted(found)
    if max_files is not None:
        out = out[:max_files]
    return out
