from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import structlog

from typeroute.analyzer.paths import PathDecomposition, decompose
from typeroute.analyzer.symtab import Entry, SymbolTable
from typeroute.domain.declarations import ALL_EXPANSION, EndpointDecl, ParamDecl
from typeroute.errors import RouterCountError

logger = structlog.get_logger(__name__)


def mount_path(entry: Entry) -> str:
    """First literal string argument of the class decorator, else the schema ref id."""
    for arg in entry.args:
        if isinstance(arg, str):
            return arg
    return entry.schema_ref_id


@dataclass
class Endpoint:
    decl: EndpointDecl
    controller: Entry
    router: Optional[Entry] = None

    @property
    def method(self) -> str:
        return self.decl.method

    @property
    def verb(self) -> str:
        return self.decl.verb

    @property
    def params(self) -> tuple[ParamDecl, ...]:
        return self.decl.params

    @property
    def check_key(self) -> str:
        return f"{self.controller.schema_ref_id}.{self.decl.method}"

    @property
    def own_path(self) -> PathDecomposition:
        for arg in self.decl.args:
            if isinstance(arg, str):
                return decompose(arg)
        return decompose(self.decl.method)

    @property
    def controller_path(self) -> PathDecomposition:
        return decompose(mount_path(self.controller))

    @property
    def router_path(self) -> PathDecomposition:
        if self.router is None:
            return PathDecomposition()
        return decompose(mount_path(self.router))

    @property
    def full_path(self) -> PathDecomposition:
        return self.router_path + self.controller_path + self.own_path

    def verbs(self) -> tuple[str, ...]:
        if self.verb == "all":
            return ALL_EXPANSION
        return (self.verb,)

    def is_path_name(self, name: str) -> bool:
        return (
            name in self.router_path.params
            or name in self.controller_path.params
            or name in self.own_path.params
        )

    def is_path_param(self, param: ParamDecl) -> bool:
        if param.path_param:
            return True
        return self.is_path_name(param.name)

    def segment_name(self, param: ParamDecl) -> str:
        if isinstance(param.path_param, str):
            return param.path_param
        return param.name

    def path_params(self) -> list[ParamDecl]:
        return [p for p in self.params if self.is_path_param(p)]

    def other_params(self) -> list[ParamDecl]:
        return [p for p in self.params if not self.is_path_param(p)]


@dataclass
class Api:
    router: Entry
    controllers: list[Entry] = field(default_factory=list)
    endpoints: list[Endpoint] = field(default_factory=list)

    def endpoints_of(self, controller: Entry) -> list[Endpoint]:
        return [e for e in self.endpoints if e.controller is controller]


def connect_endpoints(table: SymbolTable, decls: Iterable[EndpointDecl]) -> list[Endpoint]:
    """
    Link each endpoint to its owning controller. Endpoints whose owner is
    unknown are dropped with a warning.
    """
    out: list[Endpoint] = []
    for decl in decls:
        index = table.index_for(decl.owner_name, decl.owner_module)
        entry = table.get(index)
        if entry is None or entry.kind != "controller":
            logger.warning(
                "endpoint_dropped",
                owner=decl.owner_name,
                method=decl.method,
                reason="owner is not a declared controller",
            )
            continue
        endpoint = Endpoint(decl=decl, controller=entry)
        entry.endpoints.append(endpoint)
        out.append(endpoint)
    return out


def assemble(table: SymbolTable, endpoints: list[Endpoint]) -> Api:
    routers = table.routers()
    if not routers:
        raise RouterCountError("No router definitions found")
    if len(routers) > 1:
        names = ", ".join(r.schema_ref_id for r in routers)
        raise RouterCountError(f"Multiple router definitions found: {names}")
    router = routers[0]
    for endpoint in endpoints:
        endpoint.router = router
    return Api(router=router, controllers=table.controllers(), endpoints=endpoints)
