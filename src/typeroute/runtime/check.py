from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterator, Optional

from jsonschema import Draft7Validator, FormatChecker, ValidationError
from jsonschema.exceptions import best_match
from jsonschema.validators import extend

_INTEGER = re.compile(r"^[+-]?\d+$")
_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _precision(validator: Any, precision: int, instance: Any, schema: dict) -> Iterator[ValidationError]:
    if not validator.is_type(instance, "number"):
        return
    try:
        scaled = Decimal(str(instance)) * (Decimal(10) ** int(precision))
    except InvalidOperation:
        return
    if scaled != scaled.to_integral_value():
        yield ValidationError(f"{instance!r} has more than {precision} decimal places")


PrecisionValidator = extend(Draft7Validator, {"precision": _precision})

format_checker = FormatChecker()


@format_checker.checks("date-time", raises=ValueError)
def _is_date_time(value: Any) -> bool:
    if not isinstance(value, str):
        return True
    if len(value) < 11 or value[10] not in "Tt ":
        return False
    dt.datetime.fromisoformat(_utc(value))
    return True


def _utc(value: str) -> str:
    if value[-1:] in ("Z", "z"):
        return value[:-1] + "+00:00"
    return value


@dataclass
class ValidationResult:
    valid: bool
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass
class EndpointCheck:
    """
    Everything the verb decorators need for one endpoint.
    - args_to_schema: positional call arguments -> schema object
    - validate: coerces the object in place, then checks it
    - schema_to_args: schema object -> positional call arguments
    """

    schema: dict[str, Any]
    args_to_schema: Callable[[list], dict]
    schema_to_args: Callable[[dict], list]
    validate: Callable[[Any], ValidationResult]

    @classmethod
    def build(
        cls,
        schema: dict[str, Any],
        definitions: dict[str, Any],
        args_to_schema: Callable[[list], dict],
        schema_to_args: Callable[[dict], list],
    ) -> EndpointCheck:
        full = with_definitions(schema, definitions)
        return cls(
            schema=full,
            args_to_schema=args_to_schema,
            schema_to_args=schema_to_args,
            validate=compile_validator(full),
        )


def with_definitions(schema: dict[str, Any], definitions: dict[str, Any]) -> dict[str, Any]:
    out = dict(schema)
    out["definitions"] = definitions
    return out


def compile_validator(
    schema: dict[str, Any], definitions: Optional[dict[str, Any]] = None
) -> Callable[[Any], ValidationResult]:
    if definitions is not None:
        schema = with_definitions(schema, definitions)
    validator = PrecisionValidator(schema, format_checker=format_checker)

    def validate(instance: Any) -> ValidationResult:
        instance = coerce(instance, schema, schema)
        errors = list(validator.iter_errors(instance))
        if errors:
            # most relevant failure first
            first = best_match(errors)
            errors = [first] + [e for e in errors if e is not first]
            return ValidationResult(
                valid=False,
                errors=[{"path": data_path(e), "message": e.message} for e in errors],
            )
        convert_dates(instance, schema, schema)
        return ValidationResult(valid=True)

    return validate


def data_path(error: ValidationError) -> str:
    parts = []
    for p in error.absolute_path:
        parts.append(f"[{p}]" if isinstance(p, int) else f".{p}")
    return "".join(parts)


def resolve(schema: Any, root: dict[str, Any]) -> Any:
    """Follow local "#/..." references."""
    seen = 0
    while isinstance(schema, dict) and isinstance(schema.get("$ref"), str) and schema["$ref"].startswith("#"):
        target: Any = root
        for part in schema["$ref"][1:].split("/"):
            if not part:
                continue
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                return {}
            target = target[part]
        schema = target
        seen += 1
        if seen > 64:
            return {}
    return schema if isinstance(schema, dict) else {}


def _types(schema: dict[str, Any]) -> list[str]:
    kind = schema.get("type")
    if isinstance(kind, list):
        return kind
    return [kind] if kind else []


def coerce(value: Any, schema: Any, root: dict[str, Any]) -> Any:
    """
    Coerce request values towards the schema, the way query strings and
    form bodies need it: numeric and boolean strings, numbers as strings.
    Objects and arrays are updated in place.
    """
    schema = resolve(schema, root)
    if not schema:
        return value

    for sub in schema.get("allOf", []):
        value = coerce(value, sub, root)

    variants = schema.get("anyOf") or schema.get("oneOf")
    if variants:
        return _coerce_variants(value, variants, root)

    types = _types(schema)
    if isinstance(value, dict) and (not types or "object" in types):
        for name, sub in schema.get("properties", {}).items():
            if name not in value:
                continue
            # an empty query or form field counts as absent unless strings are allowed
            if value[name] == "" and not _accepts_string(sub, root):
                del value[name]
                continue
            value[name] = coerce(value[name], sub, root)
        extra = schema.get("additionalProperties")
        if isinstance(extra, dict):
            for name in list(value):
                if name not in schema.get("properties", {}):
                    value[name] = coerce(value[name], extra, root)
        return value
    if isinstance(value, list) and (not types or "array" in types):
        items = schema.get("items")
        if isinstance(items, dict):
            for i, item in enumerate(value):
                value[i] = coerce(item, items, root)
        return value
    for kind in types:
        ok, coerced = _coerce_scalar(value, kind)
        if ok:
            return coerced
    return value


def _accepts_string(schema: Any, root: dict[str, Any]) -> bool:
    schema = resolve(schema, root)
    if not schema:
        return True
    if "string" in _types(schema):
        return True
    variants = schema.get("anyOf") or schema.get("oneOf") or []
    return any(_accepts_string(v, root) for v in variants)


def _coerce_variants(value: Any, variants: list, root: dict[str, Any]) -> Any:
    resolved = [resolve(v, root) for v in variants]
    for sub in resolved:
        if _matches_type(value, _types(sub)):
            return coerce(value, sub, root)
    for sub in resolved:
        for kind in _types(sub):
            ok, coerced = _coerce_scalar(value, kind)
            if ok:
                return coerced
    return value


def _matches_type(value: Any, types: list[str]) -> bool:
    if not types:
        return False
    checks = {
        "string": lambda v: isinstance(v, str),
        "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
        "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
        "boolean": lambda v: isinstance(v, bool),
        "null": lambda v: v is None,
        "object": lambda v: isinstance(v, dict),
        "array": lambda v: isinstance(v, list),
    }
    return any(checks.get(t, lambda v: False)(value) for t in types)


def _coerce_scalar(value: Any, kind: str) -> tuple[bool, Any]:
    if _matches_type(value, [kind]):
        return True, value
    if kind == "integer":
        if isinstance(value, str) and _INTEGER.match(value.strip()):
            return True, int(value.strip())
        if isinstance(value, float) and value.is_integer():
            return True, int(value)
        if isinstance(value, bool):
            return True, int(value)
    elif kind == "number":
        if isinstance(value, str) and _NUMBER.match(value.strip()):
            text = value.strip()
            return True, int(text) if _INTEGER.match(text) else float(text)
        if isinstance(value, bool):
            return True, int(value)
    elif kind == "boolean":
        if value in ("true", "false"):
            return True, value == "true"
        if isinstance(value, (int, float)) and value in (0, 1):
            return True, bool(value)
    elif kind == "string":
        if isinstance(value, bool):
            return True, "true" if value else "false"
        if isinstance(value, (int, float)):
            return True, str(value)
    elif kind == "null":
        if value == "":
            return True, None
    return False, value


def convert_dates(value: Any, schema: Any, root: dict[str, Any]) -> Any:
    """Turn validated date strings into date / datetime objects, in place."""
    schema = resolve(schema, root)
    if not schema:
        return value
    if schema.get("toDate") and isinstance(value, str):
        return _parse_date(value)
    for key in ("allOf", "anyOf", "oneOf"):
        for sub in schema.get(key, []):
            sub_resolved = resolve(sub, root)
            if sub_resolved.get("toDate") and isinstance(value, str):
                return _parse_date(value)
            if isinstance(value, (dict, list)):
                convert_dates(value, sub_resolved, root)
    if isinstance(value, dict):
        for name, sub in schema.get("properties", {}).items():
            if name in value:
                value[name] = convert_dates(value[name], sub, root)
    elif isinstance(value, list) and isinstance(schema.get("items"), dict):
        for i, item in enumerate(value):
            value[i] = convert_dates(item, schema["items"], root)
    return value


def _parse_date(value: str) -> Any:
    if len(value) <= 10:
        return dt.date.fromisoformat(value)
    return dt.datetime.fromisoformat(_utc(value))
