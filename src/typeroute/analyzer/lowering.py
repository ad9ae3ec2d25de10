from __future__ import annotations

import copy
import dataclasses
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from typeroute.analyzer.symtab import DeclIndex, Namespace, SymbolTable
from typeroute.analyzer.tags import apply_tags
from typeroute.domain.types import (
    AnyType,
    ArrayOf,
    ConditionalOf,
    DocTag,
    Dropped,
    IndexedAccess,
    IntersectionOf,
    LiteralOf,
    MappedOf,
    ObjectLiteral,
    Parenthesized,
    Primitive,
    PropertySignature,
    Reference,
    SourceLocation,
    TupleOf,
    TypeNode,
    TypeQuery,
    UnionOf,
    Unsupported,
)
from typeroute.errors import (
    AmbiguousTypeLiteralError,
    LiteralTypeError,
    SchemaOrderError,
    UndeclaredTypeError,
    UnsupportedTypeError,
)

DATE_NAMES = {"Date", "date", "datetime"}
PROMISE_NAMES = {"Promise", "Awaitable", "Coroutine"}
ARRAY_NAMES = {"Array"}
RES_NAME = "Res"
FILE_REF_NAME = "FileRef"

# names with a fixed shape; never looked up in the symbol table
BUILTIN_NAMES = DATE_NAMES | PROMISE_NAMES | ARRAY_NAMES | {"bytes", RES_NAME, FILE_REF_NAME}


@dataclass(frozen=True)
class LowerContext:
    namespace: Namespace
    expand_refs: bool = False
    hoist: Optional[bool] = None
    enclosing: Optional[DeclIndex] = None
    location: Optional[SourceLocation] = None

    @property
    def doc_root(self) -> str:
        return self.namespace.doc_root

    @property
    def hoisting(self) -> bool:
        return self.namespace.hoist if self.hoist is None else self.hoist

    def but(self, **changes: Any) -> LowerContext:
        return dataclasses.replace(self, **changes)


def date_schema() -> dict[str, Any]:
    return {
        "oneOf": [{"type": "string", "format": "date"}, {"type": "string", "format": "date-time"}],
        "toDate": True,
        "content": "flat",
    }


def any_schema() -> dict[str, Any]:
    return {"anyOf": [{"type": "array"}, {"type": "object"}, {"type": "number"}, {"type": "string"}]}


def lower(
    node: Optional[TypeNode],
    table: SymbolTable,
    ctx: LowerContext,
    tags: Iterable[DocTag] = (),
    description: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """
    Lower a declared type into a JSON-Schema fragment.
    Returns None for constructs with no JSON representation.
    """
    if node is None:
        return {"type": "object"}
    fragment = _lower(node, table, ctx)
    if fragment is None:
        return None
    tags = tuple(tags)
    if tags:
        apply_tags(fragment, tags, ctx.location)
    if description and "$ref" not in fragment:
        fragment["description"] = description
    return fragment


def _lower(node: TypeNode, table: SymbolTable, ctx: LowerContext) -> Optional[dict[str, Any]]:
    if isinstance(node, Primitive):
        return {"type": node.name}
    if isinstance(node, AnyType):
        return any_schema()
    if isinstance(node, Dropped):
        return None
    if isinstance(node, ArrayOf):
        return _array(node.element, table, ctx)
    if isinstance(node, Reference):
        return _reference(node, table, ctx)
    if isinstance(node, UnionOf):
        return _union(node.members, table, ctx)
    if isinstance(node, IntersectionOf):
        return _all_of(node.members, table, ctx)
    if isinstance(node, TupleOf):
        return _all_of(node.elements, table, ctx)
    if isinstance(node, LiteralOf):
        return _literal(node.value, ctx)
    if isinstance(node, ObjectLiteral):
        return _object_literal(node, table, ctx)
    if isinstance(node, MappedOf):
        value = _lower(node.value, table, ctx)
        return {"type": "object", "additionalProperties": value if value is not None else {}}
    if isinstance(node, ConditionalOf):
        return _union((node.when_true, node.when_false), table, ctx)
    if isinstance(node, IndexedAccess):
        return _lower(node.object, table, ctx)
    if isinstance(node, Parenthesized):
        return _lower(node.inner, table, ctx)
    if isinstance(node, TypeQuery):
        return _lower(node.target, table, ctx)
    if isinstance(node, Unsupported):
        raise UnsupportedTypeError(
            f"cannot convert {node.kind} to JSON schema", node.location or ctx.location, kind=node.kind
        )
    raise UnsupportedTypeError(f"unknown type node {type(node).__name__}", ctx.location)


def _array(element: TypeNode, table: SymbolTable, ctx: LowerContext) -> dict[str, Any]:
    items = _lower(element, table, ctx)
    return {"type": "array", "items": items if items is not None else {}}


def _reference(node: Reference, table: SymbolTable, ctx: LowerContext) -> Optional[dict[str, Any]]:
    name = node.name
    if name in DATE_NAMES:
        return date_schema()
    if name in ARRAY_NAMES:
        return _array(node.args[0] if node.args else AnyType(), table, ctx)
    if name in PROMISE_NAMES:
        return _lower(node.args[-1], table, ctx) if node.args else None
    if name == "bytes":
        return {"type": "string", "format": "byte"}
    if name == RES_NAME:
        return _lower(node.args[1], table, ctx) if len(node.args) > 1 else None
    if name == FILE_REF_NAME:
        return {"type": "string", "format": "binary"}

    index = table.resolve(node)
    entry = table.get(index)
    if ctx.expand_refs:
        if entry is None:
            raise UndeclaredTypeError(f"undefined type reference {name}", ctx.location, name=name)
        schema = entry.schema.get(ctx.namespace.name)
        if schema is None:
            raise SchemaOrderError(
                f"schema for {entry.schema_ref_id} is not compiled in namespace {ctx.namespace.name}",
                ctx.location,
            )
        return copy.deepcopy(schema)

    ref_id = entry.schema_ref_id if entry is not None else name
    return {"$ref": f"{ctx.doc_root}/{ref_id}"}


def _union(members: Iterable[TypeNode], table: SymbolTable, ctx: LowerContext) -> Optional[dict[str, Any]]:
    variants = [f for f in (_lower(m, table, ctx) for m in members) if f is not None]
    if not variants:
        return None
    if len(variants) == 1:
        return variants[0]
    return {"anyOf": variants}


def _all_of(members: Iterable[TypeNode], table: SymbolTable, ctx: LowerContext) -> dict[str, Any]:
    return {"allOf": [f for f in (_lower(m, table, ctx) for m in members) if f is not None]}


def _literal(value: Any, ctx: LowerContext) -> dict[str, Any]:
    if isinstance(value, bool):
        return {"type": "boolean"}
    if isinstance(value, str):
        return {"type": "string", "pattern": f"^{re.escape(value)}$"}
    if isinstance(value, (int, float)):
        return {"type": "number", "minimum": value, "maximum": value}
    if value is None:
        return {"type": "null"}
    raise LiteralTypeError(f"unknown literal type ({value!r})", ctx.location)


def _object_literal(node: ObjectLiteral, table: SymbolTable, ctx: LowerContext) -> dict[str, Any]:
    if node.members and node.index_signatures:
        raise AmbiguousTypeLiteralError(
            "unable to map type literal containing both named and unnamed elements", ctx.location
        )
    if node.index_signatures:
        values = [f for f in (_lower(s.value, table, ctx) for s in node.index_signatures) if f is not None]
        if len(values) == 1:
            additional: Any = values[0]
        elif values:
            additional = {"anyOf": values}
        else:
            additional = {}
        return {"type": "object", "additionalProperties": additional}
    if not node.members:
        return {"type": "object"}

    schema = object_schema(
        ((m.name, _member(m, table, ctx), m.optional) for m in node.members)
    )
    if not ctx.hoisting:
        return schema
    index = table.store_intermediate(schema, ctx.namespace.name, ctx.enclosing, node)
    return {"$ref": f"{ctx.doc_root}/{table.get(index).schema_ref_id}"}


def _member(member: PropertySignature, table: SymbolTable, ctx: LowerContext) -> Optional[dict[str, Any]]:
    return lower(member.type, table, ctx, member.tags, member.doc)


def object_schema(properties: Iterable[tuple[str, Optional[dict[str, Any]], bool]]) -> dict[str, Any]:
    """
    Build {type: object, properties, required} from (name, fragment, optional)
    triples, leaving out members whose fragment is None.
    """
    props: dict[str, Any] = {}
    required: list[str] = []
    for name, fragment, optional in properties:
        if fragment is None:
            continue
        props[name] = fragment
        if not optional:
            required.append(name)
    schema: dict[str, Any] = {"type": "object", "properties": props}
    if required:
        schema["required"] = required
    return schema
