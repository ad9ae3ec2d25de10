from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType


def load_sibling(name: str, anchor: str) -> ModuleType:
    """
    Import the generated module `name` that sits next to the file `anchor`.
    Generated output directories are not packages, so it is loaded by path.
    """
    path = Path(anchor).resolve().parent / f"{name}.py"
    module_name = f"typeroute_generated_{abs(hash(str(path)))}_{name}"
    cached = sys.modules.get(module_name)
    if cached is not None:
        return cached
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load generated module {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module
