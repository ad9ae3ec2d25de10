from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from typeroute.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_PATTERNS = ["**/*.py"]


class CompileOptions(BaseModel):
    ignore_dirs: list[str] = Field(default_factory=list)
    max_files: Optional[int] = None
    encoding: str = "utf-8"


class GenerateOptions(BaseModel):
    patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_PATTERNS))
    source_root: Path = Path(".")
    out_dir: Path = Path("generated")
    project_name: str = "api"
    max_files: Optional[int] = None
    ignore_dirs: list[str] = Field(default_factory=list)
    debug: bool = False

    def compile_options(self) -> CompileOptions:
        return CompileOptions(ignore_dirs=self.ignore_dirs, max_files=self.max_files)


def read_pyproject(project_dir: Path) -> dict[str, Any]:
    """
    Settings from pyproject.toml:
      [project].name       -> project_name
      [tool.typeroute]     -> any GenerateOptions field
    Missing file -> {}.
    """
    path = Path(project_dir) / "pyproject.toml"
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid pyproject.toml: {e}", file=str(path)) from e

    out: dict[str, Any] = {}
    name = data.get("project", {}).get("name")
    if name:
        out["project_name"] = name
    out.update(data.get("tool", {}).get("typeroute", {}))
    return out


def load_options(project_dir: Path, **overrides: Any) -> GenerateOptions:
    """
    pyproject.toml settings with CLI overrides on top (None means unset).
    Relative paths are resolved against project_dir.
    """
    project_dir = Path(project_dir).resolve()
    settings = read_pyproject(project_dir)
    settings.update({k: v for k, v in overrides.items() if v is not None})
    try:
        opts = GenerateOptions(**settings)
    except ValidationError as e:
        raise ConfigurationError(f"invalid typeroute settings: {e}") from e

    opts = opts.model_copy(
        update={
            "source_root": (project_dir / opts.source_root).resolve(),
            "out_dir": (project_dir / opts.out_dir).resolve(),
        }
    )
    logger.debug("options_loaded", project_dir=str(project_dir), **opts.model_dump(mode="json"))
    return opts
