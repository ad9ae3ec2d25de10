from __future__ import annotations

import copy
from http import HTTPStatus
from typing import Any, Optional

from typeroute.analyzer.assembler import Api, Endpoint
from typeroute.analyzer.definitions import intermediate_definitions
from typeroute.analyzer.lowering import FILE_REF_NAME, LowerContext, PROMISE_NAMES, RES_NAME, lower
from typeroute.analyzer.parameters import expanded_param, flatten_object
from typeroute.analyzer.symtab import OPENAPI, SymbolTable
from typeroute.domain.declarations import MUTATING_VERBS
from typeroute.domain.types import LiteralOf, Reference, TypeNode, UnionOf
from typeroute.errors import ConfigurationError

OPENAPI_VERSION = "3.0.0"
JSON = "application/json"
FORM = "application/x-www-form-urlencoded"
OCTET_STREAM = "application/octet-stream"


class OpenApiGenerator:
    """
    Builds the OpenAPI document for an assembled API.

    Request parameters and responses are lowered in the openapi namespace
    with references expanded; request bodies keep their $ref so shared
    types show up once under components.schemas.
    """

    def __init__(self, api: Api, table: SymbolTable, project_name: str):
        self.api = api
        self.table = table
        self.project_name = project_name
        self.synthesized: dict[str, Any] = {}

    def build(self, definitions: dict[str, Any]) -> dict[str, Any]:
        doc: dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": self._info(), "tags": self._tags()}
        doc["paths"] = self._paths()
        # gathered after the paths, which may hoist or synthesize new schemas
        schemas = dict(definitions)
        schemas.update(intermediate_definitions(self.table, OPENAPI))
        schemas.update(self.synthesized)
        doc["components"] = {"schemas": schemas}
        return doc

    def _info(self) -> dict[str, Any]:
        info: dict[str, Any] = {"version": "1.0.0", "title": self.project_name}
        if self.api.router.doc:
            info["description"] = self.api.router.doc
        return info

    def _tags(self) -> list[dict[str, str]]:
        return [
            {"name": c.schema_ref_id, "description": c.doc}
            for c in self.api.controllers
            if c.doc
        ]

    def _paths(self) -> dict[str, Any]:
        paths: dict[str, Any] = {}
        for controller in self.api.controllers:
            for endpoint in self.api.endpoints_of(controller):
                item = paths.setdefault(endpoint.full_path.template() or "/", {})
                for verb in endpoint.verbs():
                    item[verb] = self._operation(endpoint, verb)
        return paths

    def _operation(self, endpoint: Endpoint, verb: str) -> dict[str, Any]:
        tag = endpoint.controller.schema_ref_id
        operation_id = f"{tag}-{endpoint.method}"
        if endpoint.verb == "all":
            operation_id = f"{operation_id}-{verb}"
        op: dict[str, Any] = {"operationId": operation_id, "tags": [tag]}
        if endpoint.decl.doc:
            op["description"] = endpoint.decl.doc

        parameters = self._path_parameters(endpoint)
        if verb in MUTATING_VERBS:
            body = self._request_body(endpoint)
            if body is not None:
                op["requestBody"] = body
        else:
            parameters.extend(self._query_parameters(endpoint))
        if parameters:
            op["parameters"] = parameters
        op["responses"] = responses(endpoint.decl.returns, self.table)
        return op

    def _path_parameters(self, endpoint: Endpoint) -> list[dict[str, Any]]:
        out: dict[str, dict[str, Any]] = {}
        for param in endpoint.params:
            fragment = expanded_param(endpoint, param, self.table)
            if endpoint.is_path_param(param):
                pname = endpoint.segment_name(param)
                out[pname] = _parameter(pname, "path", fragment or {"type": "string"}, True)
                continue
            flat = flatten_object(fragment, self.table, OPENAPI)
            if flat is not None:
                for pname, schema in flat.get("properties", {}).items():
                    if endpoint.is_path_name(pname):
                        out[pname] = _parameter(pname, "path", schema, True)
        for pname in sorted(endpoint.full_path.params):
            out.setdefault(pname, _parameter(pname, "path", {"type": "string"}, True))
        return list(out.values())

    def _query_parameters(self, endpoint: Endpoint) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for param in endpoint.other_params():
            fragment = expanded_param(endpoint, param, self.table)
            if fragment is None:
                continue
            flat = flatten_object(fragment, self.table, OPENAPI)
            if flat is not None and flat.get("properties"):
                required = set(flat.get("required", []))
                for pname, schema in flat["properties"].items():
                    if endpoint.is_path_name(pname):
                        continue
                    out.append(_parameter(pname, "query", schema, pname in required))
            else:
                out.append(_parameter(param.name, "query", fragment, param.required))
        return out

    def _request_body(self, endpoint: Endpoint) -> Optional[dict[str, Any]]:
        ctx = LowerContext(OPENAPI, hoist=False, location=endpoint.decl.location)
        parts = []
        for param in endpoint.other_params():
            schema = lower(param.type, self.table, ctx, param.tags)
            if schema is None:
                continue
            parts.append((param, schema, expanded_param(endpoint, param, self.table)))
        if not parts:
            return None

        if len(parts) == 1:
            param, schema, expanded = parts[0]
            # a lone body parameter is the whole request body
            flat = flatten_object(expanded, self.table, OPENAPI) or expanded
            form: dict[str, Any] = {"schema": flat}
            encoding = _json_encoding(flat.get("properties", {}))
            if encoding:
                form["encoding"] = encoding
            body: dict[str, Any] = {"content": {JSON: {"schema": schema}, FORM: form}}
            if param.required:
                body["required"] = True
            return body

        tag = endpoint.controller.schema_ref_id
        method = endpoint.method
        body_name = f"{tag}{method[:1].upper()}{method[1:]}Body"
        properties = {param.name: schema for param, schema, _ in parts}
        required = [param.name for param, _, _ in parts if param.required]
        synthesized: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            synthesized["required"] = required
        synthesized["description"] = f"synthesized request body type for {tag}.{method}"
        self.synthesized[body_name] = synthesized

        inline: dict[str, Any] = {
            "type": "object",
            "properties": {param.name: expanded for param, _, expanded in parts},
        }
        if required:
            inline["required"] = list(required)
        form = {"schema": inline}
        encoding = _json_encoding(inline["properties"])
        if encoding:
            form["encoding"] = encoding
        return {
            "required": bool(required),
            "content": {
                JSON: {"schema": {"$ref": f"{OPENAPI.doc_root}/{body_name}"}},
                FORM: form,
            },
        }


def _parameter(pname: str, location: str, schema: dict[str, Any], required: bool) -> dict[str, Any]:
    return {"name": pname, "in": location, "schema": schema, "required": bool(required)}


def _json_encoding(properties: dict[str, Any]) -> dict[str, Any]:
    """Form fields holding structured values are sent as JSON."""
    out = {}
    for pname, schema in properties.items():
        if schema is None:
            out[pname] = {"contentType": JSON}
        elif schema.get("content") != "flat" and schema.get("type") in ("object", None):
            out[pname] = {"contentType": JSON}
    return out


def _description(status: int) -> str:
    if 200 <= status < 300:
        return "Successful response"
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Response"


def _unwrap(node: TypeNode) -> TypeNode:
    while isinstance(node, Reference) and node.name in PROMISE_NAMES and node.args:
        node = node.args[-1]
    return node


def _is_res(node: TypeNode) -> bool:
    return isinstance(node, Reference) and node.name == RES_NAME


def _atom(node: TypeNode, table: SymbolTable) -> Optional[dict[str, Any]]:
    """Content map for one returned type, or None when nothing is returned."""
    if isinstance(node, Reference) and node.name == FILE_REF_NAME:
        content_type = OCTET_STREAM
        if node.args and isinstance(node.args[0], LiteralOf) and isinstance(node.args[0].value, str):
            content_type = node.args[0].value
        return {content_type: {"schema": {"type": "string", "format": "binary"}}}
    schema = lower(node, table, LowerContext(OPENAPI, expand_refs=True, hoist=False))
    if schema is None:
        return None
    return {JSON: {"schema": schema}}


def _explicit_status(node: Reference, table: SymbolTable) -> dict[str, Any]:
    status_node = node.args[0] if node.args else None
    if not isinstance(status_node, LiteralOf) or isinstance(status_node.value, bool):
        raise ConfigurationError("Res status must be a literal integer status code")
    status = int(status_node.value)
    entry: dict[str, Any] = {"description": _description(status)}
    if len(node.args) > 1:
        content = _atom(node.args[1], table)
        if content is not None:
            entry["content"] = content
    return {str(status): entry}


def _union_variants(node: TypeNode, table: SymbolTable) -> Optional[tuple[TypeNode, ...]]:
    if isinstance(node, UnionOf):
        return node.members
    if isinstance(node, Reference):
        entry = table.get(table.resolve(node))
        alias_of = getattr(entry.decl, "alias_of", None) if entry is not None else None
        if isinstance(alias_of, UnionOf):
            return alias_of.members
    return None


def _merge(new: dict[str, Any], out: dict[str, Any], merged: set) -> None:
    for status, entry in new.items():
        if status not in out:
            out[status] = copy.deepcopy(entry)
            continue
        target = out[status].setdefault("content", {})
        for content_type, media in entry.get("content", {}).items():
            if content_type not in target:
                target[content_type] = copy.deepcopy(media)
            elif content_type == JSON:
                key = (status, content_type)
                if key not in merged:
                    target[content_type] = {"schema": {"oneOf": [target[content_type]["schema"]]}}
                    merged.add(key)
                target[content_type]["schema"]["oneOf"].append(copy.deepcopy(media["schema"]))
            else:
                raise ConfigurationError(
                    f"unable to combine responses with content type {content_type} for status {status}"
                )


def responses(node: Optional[TypeNode], table: SymbolTable) -> dict[str, Any]:
    """
    Response map for a handler return type.
    - Promise/Awaitable are unwrapped
    - Res[status, T] answers with that status
    - unions (also through an alias) merge their variants; same-status JSON
      payloads become oneOf inside the content schema
    - anything else is a 200, or 204 when nothing is returned
    """
    if node is None:
        return {"200": {"description": "Successful response"}}
    node = _unwrap(node)
    if _is_res(node):
        return _explicit_status(node, table)

    variants = _union_variants(node, table)
    if variants is not None:
        out: dict[str, Any] = {}
        merged: set = set()
        for variant in variants:
            variant = _unwrap(variant)
            if _is_res(variant):
                _merge(_explicit_status(variant, table), out, merged)
                continue
            content = _atom(variant, table)
            if content is not None:
                _merge({"200": {"description": "Successful response", "content": content}}, out, merged)
        return out or {"204": {"description": "Successful response"}}

    content = _atom(node, table)
    if content is None:
        return {"204": {"description": "Successful response"}}
    return {"200": {"description": "Successful response", "content": content}}


def build_openapi(api: Api, table: SymbolTable, project_name: str, definitions: dict[str, Any]) -> dict[str, Any]:
    return OpenApiGenerator(api, table, project_name).build(definitions)
