from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from typeroute.domain.types import DocTag, SourceLocation
from typeroute.errors import TagMismatchError

_NUMERIC = {"number", "integer"}
_BRACED = re.compile(r"^\{(.*)\}$")

# tag name -> schema types it may be applied to
_TARGETS: dict[str, set[str]] = {
    "minimum": _NUMERIC,
    "maximum": _NUMERIC,
    "precision": _NUMERIC,
    "minLength": {"string"},
    "maxLength": {"string"},
    "format": {"string"},
    "pattern": {"string"},
    "minItems": {"array"},
    "maxItems": {"array"},
}

_INT_VALUED = {"minLength", "maxLength", "minItems", "maxItems", "precision"}

KNOWN_TAGS = frozenset(_TARGETS) | {"type"}


def apply_tags(
    fragment: dict[str, Any],
    tags: Iterable[DocTag],
    location: Optional[SourceLocation] = None,
) -> dict[str, Any]:
    """
    Apply documentation tags to a lowered fragment in place.
    - tags other than minItems/maxItems on an array go to its items
    - on anyOf/oneOf they go to every non-null member of a matching type
    - a tag that matches nothing is a TagMismatchError
    """
    for tag in tags:
        if tag.name not in KNOWN_TAGS:
            continue
        _apply(fragment, tag, location)
    return fragment


def _apply(fragment: dict[str, Any], tag: DocTag, location: Optional[SourceLocation]) -> None:
    if tag.name == "type":
        _apply_type_name(fragment, _clean_value(tag.value), location)
        return

    if fragment.get("type") == "array" and tag.name not in ("minItems", "maxItems"):
        _apply(fragment.setdefault("items", {}), tag, location)
        return

    variants = fragment.get("anyOf") or fragment.get("oneOf")
    if variants is not None and "type" not in fragment:
        matched = [v for v in variants if _accepts(v, tag.name)]
        if not matched:
            raise TagMismatchError(_mismatch_message(tag.name), location, tag=tag.name)
        for v in matched:
            _set_value(v, tag)
        return

    if not _accepts(fragment, tag.name):
        raise TagMismatchError(_mismatch_message(tag.name), location, tag=tag.name)
    _set_value(fragment, tag)


def _accepts(fragment: dict[str, Any], tag_name: str) -> bool:
    kind = fragment.get("type")
    return kind is not None and kind != "null" and kind in _TARGETS[tag_name]


def _set_value(fragment: dict[str, Any], tag: DocTag) -> None:
    value = _clean_value(tag.value)
    if tag.name in _INT_VALUED:
        value = int(value)
    elif tag.name in ("minimum", "maximum"):
        value = _number(value)
    fragment[tag.name] = value


def _apply_type_name(fragment: dict[str, Any], name: str, location: Optional[SourceLocation]) -> None:
    if fragment.get("type") == "array":
        _apply_type_name(fragment.setdefault("items", {}), name, location)
        return
    if fragment.get("type") not in (None, "null"):
        fragment["type"] = name
        return
    variants = fragment.get("anyOf") or fragment.get("oneOf")
    if not variants:
        raise TagMismatchError("@type can only be applied to typed values", location, tag="type")
    for v in variants:
        if v.get("type") not in (None, "null"):
            v["type"] = name


def _clean_value(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        m = _BRACED.match(value)
        if m:
            return m.group(1).strip()
    return value


def _number(value: Any) -> Any:
    if isinstance(value, (int, float)):
        return value
    text = str(value)
    try:
        return int(text)
    except ValueError:
        return float(text)


def _mismatch_message(tag_name: str) -> str:
    targets = sorted(_TARGETS[tag_name])
    if targets == ["integer", "number"]:
        return f"@{tag_name} can only be applied to numbers"
    if targets == ["array"]:
        return f"@{tag_name} can only be applied to arrays"
    return f"@{tag_name} can only be applied to strings"
