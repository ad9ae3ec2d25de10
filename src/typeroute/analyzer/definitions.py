from __future__ import annotations

from typing import Any

import structlog

from typeroute.analyzer.lowering import LowerContext, lower, object_schema
from typeroute.analyzer.symtab import NAMESPACES, Entry, MemberInfo, Namespace, SymbolTable
from typeroute.domain.declarations import TypeDecl

logger = structlog.get_logger(__name__)


def compile_members(table: SymbolTable) -> None:
    """
    Lower every member of every declared type in both namespaces.
    Members that lower to nothing in either namespace are left out.
    """
    for entry in table.types():
        decl: TypeDecl = entry.decl
        for member in decl.members:
            schemas: dict[str, Any] = {}
            for ns in NAMESPACES:
                ctx = LowerContext(ns, enclosing=entry.index, location=member.location or decl.location)
                schemas[ns.name] = lower(member.type, table, ctx, member.tags, member.doc)
            if any(s is None for s in schemas.values()):
                continue
            entry.members[member.name] = MemberInfo(
                type=member.type,
                optional=member.optional,
                doc=member.doc,
                tags=member.tags,
                schemas=schemas,
            )
        entry.inherits = _inherits(table, entry)


def _inherits(table: SymbolTable, entry: Entry) -> list:
    out = []
    for base in entry.decl.bases:
        index = table.resolve(base)
        base_entry = table.get(index)
        if base_entry is None or base_entry.kind != "type":
            logger.debug("base_ignored", type=entry.schema_ref_id, base=getattr(base, "name", repr(base)))
            continue
        out.append(index)
    return out


def emit_definitions(table: SymbolTable, ns: Namespace) -> dict[str, Any]:
    """
    Compile the schema of every relevant type for one namespace, cache it on
    the entry and return the definitions map keyed by schema ref id.
    """
    out: dict[str, Any] = {}
    for entry in table.types():
        if not entry.relevant:
            continue
        schema = _entry_schema(table, entry, ns)
        if schema is None:
            continue
        entry.schema[ns.name] = schema
        out[entry.schema_ref_id] = schema
    if ns.hoist:
        out.update(intermediate_definitions(table, ns))
    return out


def intermediate_definitions(table: SymbolTable, ns: Namespace) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for entry in table.intermediates():
        schema = entry.schema.get(ns.name)
        if schema is None:
            continue
        if entry.enclosing is not None:
            enclosing = table.get(entry.enclosing)
            if enclosing is None or not enclosing.relevant:
                continue
        out[entry.schema_ref_id] = schema
    return out


def _entry_schema(table: SymbolTable, entry: Entry, ns: Namespace):
    decl: TypeDecl = entry.decl
    if decl.alias_of is not None:
        # the alias itself is the named definition, so its literal is not hoisted again
        ctx = LowerContext(ns, hoist=False, enclosing=entry.index, location=decl.location)
        return lower(decl.alias_of, table, ctx, decl.tags, entry.doc)

    schema = object_schema(
        (name, m.schemas[ns.name], m.optional) for name, m in entry.members.items()
    )
    if entry.doc:
        schema["description"] = entry.doc
    if entry.inherits:
        bases = [{"$ref": f"{ns.doc_root}/{table.get(i).schema_ref_id}"} for i in entry.inherits]
        return {"allOf": bases + [schema]}
    return schema
