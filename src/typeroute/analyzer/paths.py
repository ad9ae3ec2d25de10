from __future__ import annotations

import re
from dataclasses import dataclass

_BRACED_PARAM = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass(frozen=True)
class PathDecomposition:
    """
    Route template split into segments. Parameter segments are stored
    as ":name" and their names are collected in `params`.
    """

    segments: tuple[str, ...] = ()
    params: frozenset[str] = frozenset()

    def __add__(self, other: PathDecomposition) -> PathDecomposition:
        return PathDecomposition(self.segments + other.segments, self.params | other.params)

    def template(self) -> str:
        """/api/user/{userId} form, shared by OpenAPI and Starlette routing."""
        parts = [f"{{{s[1:]}}}" if s.startswith(":") else s for s in self.segments]
        return "/" + "/".join(parts) if parts else ""


def decompose(path: str | None) -> PathDecomposition:
    segments: list[str] = []
    params: set[str] = set()
    for raw in (path or "").split("/"):
        raw = raw.strip()
        if not raw:
            continue
        braced = _BRACED_PARAM.match(raw)
        if raw.startswith(":") and len(raw) > 1:
            name = raw[1:]
        elif braced:
            name = braced.group(1)
        else:
            segments.append(raw)
            continue
        params.add(name)
        segments.append(f":{name}")
    return PathDecomposition(tuple(segments), frozenset(params))


def join_templates(*parts: str) -> str:
    """Join already rendered templates; empty parts are skipped."""
    segs = [s for p in parts for s in p.split("/") if s]
    return "/" + "/".join(segs) if segs else ""
