from __future__ import annotations

from typing import Iterable, Iterator

import structlog

from typeroute.analyzer.symtab import Entry, SymbolTable
from typeroute.domain.declarations import ClassDecl, DeclarationSet, TypeDecl
from typeroute.errors import DuplicateDeclarationError

logger = structlog.get_logger(__name__)


def build_symbol_table(decls: DeclarationSet) -> SymbolTable:
    """
    Pass 1: give every declaration an identity and an entry.
    - all names are announced first, so same-named declarations from
      different modules get module-qualified indices
    - nested declarations are visited recursively
    - members are stored raw; they are compiled later
    """
    table = SymbolTable()
    types = list(_flatten(decls.types))

    for t in types:
        table.declare(t.name, t.module)
    for c in decls.classes:
        table.declare(c.name, c.module)

    for t in types:
        _put(table, Entry(kind="type", index=None, decl=t, doc=t.doc, module=t.module), t.name, t.module)
    for c in decls.classes:
        _put(table, _class_entry(c), c.name, c.module)

    logger.debug("symbol_table_built", types=len(types), classes=len(decls.classes))
    return table


def _put(table: SymbolTable, entry: Entry, name: str, module) -> Entry:
    index = table.index_for(name, module)
    if index in table:
        existing = table.get(index)
        raise DuplicateDeclarationError(
            f"duplicate {entry.kind} declaration {name} (already declared as {existing.kind})",
            getattr(entry.decl, "location", None),
            name=name,
        )
    return table.put(index, entry)


def _class_entry(c: ClassDecl) -> Entry:
    return Entry(
        kind=c.role,
        index=None,
        decl=c,
        doc=c.doc,
        file_name=c.file_name,
        module=c.module,
        args=tuple(c.args),
    )


def _flatten(types: Iterable[TypeDecl]) -> Iterator[TypeDecl]:
    for t in types:
        yield t
        if t.nested:
            yield from _flatten(t.nested)
