from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from typeroute.analyzer.assembler import Endpoint
from typeroute.analyzer.lowering import LowerContext, lower
from typeroute.analyzer.symtab import CHECK, OPENAPI, Namespace, SymbolTable
from typeroute.domain.declarations import ParamDecl


@dataclass
class ParameterList:
    """
    Schema over an endpoint's effective parameter list.

    `arg_names` is the formal parameter order used to move values between
    positional call arguments and the schema object. With `passthrough`
    the lone parameter is the schema object itself.
    """

    schema: dict[str, Any]
    arg_names: list[str] = field(default_factory=list)
    passthrough: bool = False


def is_structural_object(fragment: Optional[dict[str, Any]]) -> bool:
    return fragment is not None and fragment.get("type") == "object"


def flatten_object(
    fragment: Optional[dict[str, Any]], table: SymbolTable, ns: Namespace
) -> Optional[dict[str, Any]]:
    """
    Object view of a fragment. An inherited record (allOf over its bases and
    its own members) is merged into one object; anything that is not an
    object gives None.
    """
    if fragment is None:
        return None
    if is_structural_object(fragment):
        return fragment
    parts = fragment.get("allOf")
    if not parts:
        return None
    properties: dict[str, Any] = {}
    required: list[str] = []
    for part in parts:
        if "$ref" in part:
            entry = table.by_ref_id(part["$ref"].rsplit("/", 1)[-1])
            part = entry.schema.get(ns.name) if entry is not None else None
        flat = flatten_object(part, table, ns)
        if flat is None:
            return None
        properties.update(flat.get("properties", {}))
        required.extend(r for r in flat.get("required", []) if r not in required)
    out: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        out["required"] = required
    return out


def parameter_list(endpoint: Endpoint, table: SymbolTable) -> ParameterList:
    method = endpoint.method
    location = endpoint.decl.location
    ctx = LowerContext(CHECK, location=location)
    params = endpoint.params

    properties: dict[str, Any] = {}
    required: list[str] = []
    extra: dict[str, Any] = {}
    passthrough = False

    if len(params) == 1 and lower(params[0].type, table, ctx, params[0].tags) is not None:
        param = params[0]
        expanded = lower(param.type, table, ctx.but(expand_refs=True), param.tags)
        expanded = flatten_object(expanded, table, CHECK)
        if expanded is not None:
            properties.update(expanded.get("properties", {}))
            required.extend(expanded.get("required", []))
            if "additionalProperties" in expanded:
                extra["additionalProperties"] = expanded["additionalProperties"]
            passthrough = True
        else:
            _add_param(properties, required, param, lower(param.type, table, ctx, param.tags))
    else:
        for param in params:
            _add_param(properties, required, param, lower(param.type, table, ctx, param.tags))

    schema: dict[str, Any] = {
        "title": f"{method} plist",
        "description": f"Parameter list for {method}",
        "type": "object",
        "properties": properties,
    }
    schema.update(extra)
    # the route match guarantees path segments
    required = [n for n in required if not _is_path_name(endpoint, n)]
    if required:
        schema["required"] = required
    return ParameterList(schema=schema, arg_names=[p.name for p in params], passthrough=passthrough)


def _add_param(properties: dict, required: list, param: ParamDecl, fragment: Optional[dict]) -> None:
    if fragment is None:
        return
    properties[param.name] = fragment
    if param.required:
        required.append(param.name)


def _is_path_name(endpoint: Endpoint, name: str) -> bool:
    if endpoint.is_path_name(name):
        return True
    return any(p.name == name and endpoint.is_path_param(p) for p in endpoint.params)


def expanded_param(endpoint: Endpoint, param: ParamDecl, table: SymbolTable) -> Optional[dict[str, Any]]:
    """OpenAPI-namespace schema of one parameter with references expanded."""
    ctx = LowerContext(OPENAPI, expand_refs=True, hoist=False, location=endpoint.decl.location)
    return lower(param.type, table, ctx, param.tags)


def object_param(endpoint: Endpoint, table: SymbolTable) -> Optional[tuple[ParamDecl, dict[str, Any]]]:
    """
    The lone non-path parameter when it stands for the whole request object
    (body, or query string for read verbs), with its flattened schema.
    Listed properties are read one by one; without properties (mappings,
    empty records) the whole store is the argument.
    """
    others = [p for p in endpoint.other_params() if expanded_param(endpoint, p, table) is not None]
    if len(others) != 1:
        return None
    fragment = flatten_object(expanded_param(endpoint, others[0], table), table, OPENAPI)
    if fragment is None:
        return None
    return others[0], fragment
