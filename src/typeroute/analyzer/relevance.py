from __future__ import annotations

from typing import Iterable, Optional

from typeroute.analyzer.assembler import Endpoint
from typeroute.analyzer.lowering import BUILTIN_NAMES, LowerContext, lower
from typeroute.analyzer.symtab import CHECK, DeclIndex, SymbolTable
from typeroute.domain.types import (
    ArrayOf,
    ConditionalOf,
    IndexedAccess,
    IntersectionOf,
    MappedOf,
    ObjectLiteral,
    Parenthesized,
    Reference,
    SourceLocation,
    TupleOf,
    TypeNode,
    TypeQuery,
    UnionOf,
)
from typeroute.errors import UndeclaredTypeError


class RelevanceMarker:
    """
    Marks every declaration reachable from endpoint signatures as relevant.
    Visited indices are remembered, so cyclic type graphs terminate.
    """

    def __init__(self, table: SymbolTable):
        self.table = table
        self._visited: set[DeclIndex] = set()

    def mark_endpoint(self, endpoint: Endpoint) -> None:
        location = endpoint.decl.location
        if endpoint.decl.returns is not None:
            self.mark(endpoint.decl.returns, location)
        for param in endpoint.params:
            # parameters that lower to nothing (callables) are not part of the contract
            if lower(param.type, self.table, LowerContext(CHECK, location=location)) is None:
                continue
            self.mark(param.type, location)

    def mark(self, node: Optional[TypeNode], location: Optional[SourceLocation] = None) -> None:
        if node is None:
            return
        if isinstance(node, Reference):
            self._mark_reference(node, location)
        elif isinstance(node, ArrayOf):
            self.mark(node.element, location)
        elif isinstance(node, (UnionOf, IntersectionOf)):
            self._mark_all(node.members, location)
        elif isinstance(node, TupleOf):
            self._mark_all(node.elements, location)
        elif isinstance(node, ObjectLiteral):
            self._mark_all((m.type for m in node.members), location)
            self._mark_all((s.value for s in node.index_signatures), location)
        elif isinstance(node, MappedOf):
            self.mark(node.value, location)
        elif isinstance(node, ConditionalOf):
            self._mark_all((node.when_true, node.when_false), location)
        elif isinstance(node, IndexedAccess):
            self.mark(node.object, location)
        elif isinstance(node, Parenthesized):
            self.mark(node.inner, location)
        elif isinstance(node, TypeQuery):
            self.mark(node.target, location)

    def _mark_all(self, nodes: Iterable[TypeNode], location: Optional[SourceLocation]) -> None:
        for n in nodes:
            self.mark(n, location)

    def _mark_reference(self, node: Reference, location: Optional[SourceLocation]) -> None:
        self._mark_all(node.args, location)
        if node.name in BUILTIN_NAMES:
            return
        index = self.table.resolve(node)
        entry = self.table.get(index)
        if entry is None:
            raise UndeclaredTypeError(f"undefined type reference {node.name}", location, name=node.name)
        self.mark_index(index)

    def mark_index(self, index: DeclIndex) -> None:
        if index in self._visited:
            return
        self._visited.add(index)
        entry = self.table.get(index)
        if entry is None:
            return
        entry.relevant = True
        decl = entry.decl
        location = getattr(decl, "location", None)
        for member in entry.members.values():
            self.mark(member.type, location)
        if getattr(decl, "alias_of", None) is not None:
            self.mark(decl.alias_of, location)
        for base in entry.inherits:
            self.mark_index(base)


def mark_relevant(table: SymbolTable, endpoints: Iterable[Endpoint]) -> None:
    marker = RelevanceMarker(table)
    for endpoint in endpoints:
        marker.mark_endpoint(endpoint)
