from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Optional

from typeroute.domain.types import DocTag, Reference, TypeNode

EntryKind = Literal["type", "controller", "router", "intermediate"]


@dataclass(frozen=True)
class Namespace:
    name: str
    doc_root: str
    hoist: bool


CHECK = Namespace("check", "#/definitions", hoist=False)
OPENAPI = Namespace("openapi", "#/components/schemas", hoist=True)
NAMESPACES = (CHECK, OPENAPI)

# keeps hoisted literals apart from user declarations of the same name
INTERMEDIATE_MODULE = "<intermediate>"


@dataclass(frozen=True)
class DeclIndex:
    """
    Identity of a declared name. `module` is only set when the same local
    name is declared in more than one module.
    """

    local: str
    module: Optional[str] = None

    def __str__(self) -> str:
        if self.module is None:
            return self.local
        return f"{self.module}.{self.local}"


@dataclass
class MemberInfo:
    type: TypeNode
    optional: bool = False
    doc: Optional[str] = None
    tags: tuple[DocTag, ...] = ()
    schemas: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class Entry:
    kind: EntryKind
    index: DeclIndex
    decl: Any = None
    schema_ref_id: str = ""
    members: dict[str, MemberInfo] = field(default_factory=dict)
    inherits: list[DeclIndex] = field(default_factory=list)
    relevant: bool = False
    schema: dict[str, dict[str, Any]] = field(default_factory=dict)
    doc: Optional[str] = None
    # controller/router
    file_name: str = ""
    module: Optional[str] = None
    args: tuple[Any, ...] = ()
    endpoints: list[Any] = field(default_factory=list)
    # intermediate
    enclosing: Optional[DeclIndex] = None


class SymbolTable:
    """
    Storage for every declared type, controller and router of one run.

    Built in two phases: names are announced with `declare` and entries are
    inserted with `put` (pass 1), then entries are compiled and queried
    (pass 2). Entries are never deleted.
    """

    def __init__(self) -> None:
        self._entries: dict[DeclIndex, Entry] = {}
        self._modules: dict[str, set[Optional[str]]] = defaultdict(set)
        self._ref_ids: set[str] = set()
        self._intermediates: dict[tuple[Any, Optional[DeclIndex]], DeclIndex] = {}
        self._intermediate_count = 0

    def declare(self, local: str, module: Optional[str]) -> None:
        self._modules[local].add(module)

    def index_for(self, local: str, module: Optional[str]) -> DeclIndex:
        if len(self._modules.get(local, ())) > 1:
            return DeclIndex(local, module)
        return DeclIndex(local)

    def resolve(self, node: TypeNode) -> Optional[DeclIndex]:
        """Index for a named reference; None for anonymous types."""
        if not isinstance(node, Reference):
            return None
        modules = self._modules.get(node.name, set())
        if len(modules) > 1 and node.module in modules:
            return DeclIndex(node.name, node.module)
        return DeclIndex(node.name)

    def get(self, index: Optional[DeclIndex]) -> Optional[Entry]:
        if index is None:
            return None
        return self._entries.get(index)

    def __contains__(self, index: object) -> bool:
        return index in self._entries

    def by_ref_id(self, ref_id: str) -> Optional[Entry]:
        for entry in self._entries.values():
            if entry.schema_ref_id == ref_id:
                return entry
        return None

    def put(self, index: DeclIndex, entry: Entry) -> Entry:
        existing = self._entries.get(index)
        entry.index = index
        if existing is not None:
            entry.schema_ref_id = existing.schema_ref_id
        elif not entry.schema_ref_id:
            entry.schema_ref_id = self._fresh_ref_id(index.local)
        else:
            entry.schema_ref_id = self._fresh_ref_id(entry.schema_ref_id)
        self._entries[index] = entry
        return entry

    def store_intermediate(
        self,
        schema: dict[str, Any],
        namespace: str,
        enclosing: Optional[DeclIndex],
        key: Any,
    ) -> DeclIndex:
        memo_key = (key, enclosing)
        index = self._intermediates.get(memo_key)
        if index is None:
            self._intermediate_count += 1
            name = f"Intermediate{self._intermediate_count}"
            index = DeclIndex(name, INTERMEDIATE_MODULE)
            self.put(index, Entry(kind="intermediate", index=index, schema_ref_id=name, enclosing=enclosing))
            self._intermediates[memo_key] = index
        entry = self._entries[index]
        entry.schema.setdefault(namespace, schema)
        return index

    def _fresh_ref_id(self, base: str) -> str:
        candidate = base
        n = 2
        while candidate in self._ref_ids:
            candidate = f"{base}-{n}"
            n += 1
        self._ref_ids.add(candidate)
        return candidate

    def entries(self) -> Iterator[Entry]:
        return iter(list(self._entries.values()))

    def of_kind(self, kind: EntryKind) -> list[Entry]:
        return [e for e in self._entries.values() if e.kind == kind]

    def types(self) -> list[Entry]:
        return self.of_kind("type")

    def controllers(self) -> list[Entry]:
        return self.of_kind("controller")

    def routers(self) -> list[Entry]:
        return self.of_kind("router")

    def intermediates(self) -> list[Entry]:
        return self.of_kind("intermediate")
