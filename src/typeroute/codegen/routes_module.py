from __future__ import annotations

import ast
from pathlib import Path
from typing import Any, Optional

from typeroute.analyzer.assembler import Api, Endpoint, mount_path
from typeroute.analyzer.parameters import expanded_param, object_param
from typeroute.analyzer.paths import decompose, join_templates
from typeroute.analyzer.symtab import Entry, SymbolTable
from typeroute.codegen.check_module import identifier
from typeroute.codegen.emitter import expression, literal, method_call, name, render, statements
from typeroute.domain.declarations import ALL_EXPANSION, MUTATING_VERBS
from typeroute.errors import ConfigurationError

_SCALAR_TYPES = {"string", "number", "integer", "boolean", "null"}

_PREAMBLE = """
from pathlib import Path

from fastapi import Request

from typeroute.runtime import response
from typeroute.runtime.binding import ControllerProperties, EndpointCheckBinding
from typeroute.runtime.coerce import parse_json_if_string, read_array, read_body, read_merged, read_object, settle
from typeroute.runtime.docs import add_doc_routes
from typeroute.runtime.loader import load_sibling
"""

_BINDING = """
binding = EndpointCheckBinding(load_sibling('__CHECK_MODULE__', __file__).checks)
"""

_REGISTER = """
def register(root):
    __ADD_ROUTERS__
    __HANDLERS__
    add_doc_routes(root.get_router(), '__PREFIX__', Path(__file__).parent / 'docs', '__OPENAPI_FILE__', '__REDOC_FILE__')
    return root.build()
"""

_ADD_ROUTER = """
root.add_router('__PATH__', '__REF__')
"""

_HANDLER = """
async def __HANDLER__(request: Request):
    properties = ControllerProperties(binding, root.context, request, '__REF__')
    try:
        controller = __CONTROLLER__(properties)
        __READS__
        res = await settle(__CALL__)
        return response.success(res, properties)
    except Exception as e:
        return response.error(e, properties)

root.get_router('__REF__').add_api_route('__PATH__', __HANDLER__, methods=__METHODS__, name='__KEY__')
"""

_STORE = {
    "query": "store = request.query_params",
    "body": "store = await read_body(request)",
    "merged": "store = await read_merged(request)",
}

_READ = {
    "scalar": "__STORE__.get(__KEY__)",
    "json": "parse_json_if_string(__STORE__.get(__KEY__))",
    "array": "read_array(__STORE__, __KEY__)",
    "object_array": "read_array(__STORE__, __KEY__, objects=True)",
}

_ASSIGN = """
__VAR__ = __VALUE__
"""

_MERGE_PROPERTY = """
value = __VALUE__
if value is not None:
    __VAR__[__KEY__] = value
"""


def coercion(fragment: Optional[dict[str, Any]]) -> str:
    """How a raw request value is turned into a handler argument."""
    if fragment is None or fragment.get("content") == "flat":
        return "scalar"
    kind = fragment.get("type")
    if kind == "array":
        items = fragment.get("items") or {}
        if items.get("type") in _SCALAR_TYPES or items.get("content") == "flat" or not items:
            return "array"
        return "object_array"
    if kind in _SCALAR_TYPES:
        return "scalar"
    variants = fragment.get("anyOf") or fragment.get("oneOf")
    if kind is None and variants:
        if all(v.get("type") in _SCALAR_TYPES for v in variants):
            return "scalar"
    return "json"


def controller_module(entry: Entry, source_root: Optional[Path]) -> str:
    if entry.module:
        return entry.module
    if not entry.file_name:
        raise ConfigurationError(f"cannot locate the module of controller {entry.schema_ref_id}")
    path = Path(entry.file_name)
    if source_root is not None:
        try:
            path = path.resolve().relative_to(Path(source_root).resolve())
        except ValueError:
            path = Path(path.name)
    else:
        path = Path(path.name)
    return ".".join(path.with_suffix("").parts)


def controller_prefix(api: Api, controller: Entry) -> str:
    router_path = decompose(mount_path(api.router)).template()
    return join_templates(router_path, decompose(mount_path(controller)).template())


def generate_routes_module(
    api: Api,
    table: SymbolTable,
    source_root: Optional[Path] = None,
    check_module: str = "_check",
    openapi_file: str = "openapi.json",
    redoc_file: str = "redoc.html",
) -> str:
    """
    Source of the dispatch module. Its register(root) mounts one route per
    endpoint on the RouterBase and returns the built APIRouter.
    """
    body: list[ast.stmt] = statements(_PREAMBLE)
    aliases: dict[str, str] = {}
    for controller in api.controllers:
        alias = identifier(controller.schema_ref_id, "controller")
        aliases[controller.schema_ref_id] = alias
        body.append(
            ast.ImportFrom(
                module=controller_module(controller, source_root),
                names=[ast.alias(name=controller.decl.name, asname=alias)],
                level=0,
            )
        )
    body.extend(statements(_BINDING, __CHECK_MODULE__=check_module))

    add_routers: list[ast.stmt] = []
    for controller in api.controllers:
        add_routers.extend(
            statements(_ADD_ROUTER, __PATH__=controller_prefix(api, controller), __REF__=controller.schema_ref_id)
        )

    handlers: list[ast.stmt] = []
    for endpoint in api.endpoints:
        handlers.extend(_handler(api, endpoint, table, aliases[endpoint.controller.schema_ref_id]))

    body.extend(
        statements(
            _REGISTER,
            __ADD_ROUTERS__=add_routers,
            __HANDLERS__=handlers,
            __PREFIX__=decompose(mount_path(api.router)).template(),
            __OPENAPI_FILE__=openapi_file,
            __REDOC_FILE__=redoc_file,
        )
    )
    return render(body)


def _store_kind(endpoint: Endpoint) -> str:
    if endpoint.verb == "all":
        return "merged"
    if endpoint.verb in MUTATING_VERBS:
        return "body"
    return "query"


def _read(kind: str, store: ast.expr, key: str) -> ast.expr:
    return expression(_READ[kind], __STORE__=store, __KEY__=literal(key))


def _handler(api: Api, endpoint: Endpoint, table: SymbolTable, alias: str) -> list[ast.stmt]:
    path_store = expression("request.path_params")
    reads: list[ast.stmt] = []
    call_args: list[ast.expr] = []
    # with more than one non-path parameter every parameter is read by its own name
    lone = object_param(endpoint, table)
    lone_object, object_schema = lone if lone is not None else (None, {})

    if endpoint.other_params():
        reads.extend(statements(_STORE[_store_kind(endpoint)]))

    for param in endpoint.params:
        var = identifier("arg", param.name)
        fragment = expanded_param(endpoint, param, table)
        if endpoint.is_path_param(param):
            value = _read(coercion(fragment), path_store, endpoint.segment_name(param))
            reads.extend(statements(_ASSIGN, __VAR__=var, __VALUE__=value))
        elif param is lone_object and not object_schema.get("properties"):
            reads.extend(statements(_ASSIGN, __VAR__=var, __VALUE__=expression("read_object(store)")))
        elif param is lone_object:
            reads.extend(statements(_ASSIGN, __VAR__=var, __VALUE__=expression("{}")))
            for prop, prop_schema in object_schema["properties"].items():
                store = path_store if endpoint.is_path_name(prop) else name("store")
                value = _read(coercion(prop_schema), store, prop)
                reads.extend(
                    statements(_MERGE_PROPERTY, __VALUE__=value, __VAR__=var, __KEY__=literal(prop))
                )
        else:
            value = _read(coercion(fragment), name("store"), param.name)
            reads.extend(statements(_ASSIGN, __VAR__=var, __VALUE__=value))
        call_args.append(name(var))

    verbs = ALL_EXPANSION if endpoint.verb == "all" else (endpoint.verb,)
    route_path = endpoint.own_path.template()
    if not route_path and not controller_prefix(api, endpoint.controller):
        route_path = "/"

    return statements(
        _HANDLER,
        __HANDLER__=identifier(endpoint.controller.schema_ref_id, endpoint.method),
        __REF__=endpoint.controller.schema_ref_id,
        __CONTROLLER__=alias,
        __READS__=reads,
        __CALL__=method_call("controller", endpoint.method, call_args),
        __PATH__=route_path,
        __METHODS__=literal([v.upper() for v in verbs]),
        __KEY__=endpoint.check_key,
    )
