from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

# keyword -> documentation tag
TAG_NAMES = {
    "minimum": "minimum",
    "maximum": "maximum",
    "min_length": "minLength",
    "max_length": "maxLength",
    "min_items": "minItems",
    "max_items": "maxItems",
    "format": "format",
    "pattern": "pattern",
    "precision": "precision",
    "type": "type",
}


@dataclass(frozen=True)
class Constraints:
    """
    Schema constraints for a parameter or member, used inside Annotated:

        limit: Annotated[int, Constraints(minimum=1, maximum=100)]
    """

    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    format: Optional[str] = None
    pattern: Optional[str] = None
    precision: Optional[int] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class PathParam:
    """
    Marks a parameter as read from the URL path. `name` is the path segment
    when it differs from the parameter name.
    """

    name: Optional[str] = None
