from __future__ import annotations

import inspect
import json
from typing import Any

from starlette.datastructures import MultiDict
from starlette.requests import Request

from typeroute.errors import HttpError

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
_BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def parse_json_if_string(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def force_array(value: Any) -> Any:
    if value is None or isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def read_array(store: Any, key: str, objects: bool = False) -> Any:
    """
    Read a list-valued parameter from a query string, form or JSON body.
    Repeated keys, a JSON array string and a single value are all accepted.
    """
    if hasattr(store, "getlist"):
        values = store.getlist(key)
        if not values:
            return None
        value: Any = values[0] if len(values) == 1 else list(values)
    else:
        value = store.get(key)
    if isinstance(value, str) and value.lstrip().startswith("["):
        value = parse_json_if_string(value)
    value = force_array(value)
    if value is not None and objects:
        value = [parse_json_if_string(v) for v in value]
    return value


def read_object(store: Any) -> dict:
    """Every field of a request store as one dict. Repeated query or form keys keep their last value."""
    return dict(store)


async def read_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    if any(t in content_type for t in _FORM_TYPES):
        return await request.form()
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise HttpError(400, "request body is not valid JSON") from exc
    if not isinstance(data, dict):
        raise HttpError(400, "request body must be a JSON object")
    return data


async def read_merged(request: Request) -> MultiDict:
    """Query parameters overlaid with the body, for endpoints bound to every verb."""
    items = list(request.query_params.multi_items())
    if request.method in _BODY_METHODS:
        body = await read_body(request)
        if hasattr(body, "multi_items"):
            items.extend(body.multi_items())
        else:
            items.extend(body.items())
    return MultiDict(items)


async def settle(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
