from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

DEFAULT_IGNORES = {
    ".git",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
    "dist",
    "build",
    ".mypy_cache",
    ".ruff_cache",
    ".pytest_cache",
}


def should_ignore_dir(dir_path: Path, extra: Optional[Iterable[str]] = None) -> bool:
    name = dir_path.name
    return name in DEFAULT_IGNORES or (extra is not None and name in set(extra))


def is_ignored_path(path: Path, root: Path, extra: Optional[Iterable[str]] = None) -> bool:
    """Whether any directory between root and path is ignored."""
    try:
        rel = path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return any(should_ignore_dir(Path(part), extra) for part in rel.parts[:-1])
