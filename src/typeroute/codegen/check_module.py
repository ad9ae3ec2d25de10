from __future__ import annotations

import ast
import re
from typing import Any

from typeroute.analyzer.assembler import Endpoint
from typeroute.analyzer.parameters import ParameterList
from typeroute.codegen.emitter import expression, literal, name, render, statements

_NON_IDENT = re.compile(r"\W")

_PREAMBLE = """
from typeroute.runtime.check import EndpointCheck

definitions = __DEFINITIONS__

checks = {}
"""

_PASSTHROUGH = """
def __ARGS_TO_SCHEMA__(args):
    if args and args[0] is not None:
        return args[0]
    return {}

def __SCHEMA_TO_ARGS__(o):
    return [o]
"""

_POSITIONAL = """
def __ARGS_TO_SCHEMA__(args):
    o = {}
    __ASSIGNMENTS__
    return o

def __SCHEMA_TO_ARGS__(o):
    return __ARGS__
"""

_ASSIGN = """
if len(args) > __POSITION__ and args[__POSITION__] is not None:
    o['__NAME__'] = args[__POSITION__]
"""

_REGISTER = """
checks['__KEY__'] = EndpointCheck.build(
    schema=__SCHEMA__,
    definitions=definitions,
    args_to_schema=__ARGS_TO_SCHEMA__,
    schema_to_args=__SCHEMA_TO_ARGS__,
)
"""


def identifier(*parts: str) -> str:
    return "_".join(_NON_IDENT.sub("_", p) for p in parts if p)


def generate_check_module(definitions: dict[str, Any], entries: list[tuple[Endpoint, ParameterList]]) -> str:
    """
    Source of the validator module: the check-namespace definitions and one
    EndpointCheck per endpoint, keyed "<ControllerRef>.<method>".
    """
    body: list[ast.stmt] = statements(_PREAMBLE, __DEFINITIONS__=literal(definitions))
    for endpoint, plist in entries:
        body.extend(_endpoint_statements(endpoint, plist))
    return render(body)


def _endpoint_statements(endpoint: Endpoint, plist: ParameterList) -> list[ast.stmt]:
    base = identifier(endpoint.controller.schema_ref_id, endpoint.method)
    a2s = f"{base}_args_to_schema"
    s2a = f"{base}_schema_to_args"

    if plist.passthrough:
        out = statements(_PASSTHROUGH, __ARGS_TO_SCHEMA__=a2s, __SCHEMA_TO_ARGS__=s2a)
    else:
        assignments: list[ast.stmt] = []
        for position, arg in enumerate(plist.arg_names):
            assignments.extend(statements(_ASSIGN, __POSITION__=literal(position), __NAME__=arg))
        args = ast.List(
            elts=[expression("o.get(__NAME__)", __NAME__=literal(arg)) for arg in plist.arg_names],
            ctx=ast.Load(),
        )
        out = statements(
            _POSITIONAL,
            __ARGS_TO_SCHEMA__=a2s,
            __SCHEMA_TO_ARGS__=s2a,
            __ASSIGNMENTS__=assignments,
            __ARGS__=args,
        )

    out.extend(
        statements(
            _REGISTER,
            __KEY__=endpoint.check_key,
            __SCHEMA__=literal(plist.schema),
            __ARGS_TO_SCHEMA__=name(a2s),
            __SCHEMA_TO_ARGS__=name(s2a),
        )
    )
    return out
