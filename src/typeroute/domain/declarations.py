from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from typeroute.domain.types import DocTag, SourceLocation, TypeNode

Verb = Literal["get", "post", "put", "patch", "delete", "all"]
ClassRole = Literal["controller", "router"]

VERBS: tuple[str, ...] = ("get", "post", "put", "patch", "delete", "all")
MUTATING_VERBS = {"post", "put", "patch"}
ALL_EXPANSION: tuple[str, ...] = ("get", "post", "put", "patch", "delete")


@dataclass(frozen=True)
class MemberDecl:
    name: str
    type: TypeNode
    optional: bool = False
    doc: Optional[str] = None
    tags: tuple[DocTag, ...] = ()
    location: Optional[SourceLocation] = None


@dataclass(frozen=True)
class TypeDecl:
    """
    An interface (named members, optional bases) or, when alias_of is set,
    a type alias.
    """

    name: str
    module: Optional[str] = None
    members: tuple[MemberDecl, ...] = ()
    bases: tuple[TypeNode, ...] = ()
    alias_of: Optional[TypeNode] = None
    doc: Optional[str] = None
    tags: tuple[DocTag, ...] = ()
    location: Optional[SourceLocation] = None
    nested: tuple[TypeDecl, ...] = ()


@dataclass(frozen=True)
class ClassDecl:
    name: str
    role: ClassRole
    module: Optional[str] = None
    args: tuple[Any, ...] = ()
    doc: Optional[str] = None
    file_name: str = ""
    location: Optional[SourceLocation] = None


@dataclass(frozen=True)
class ParamDecl:
    name: str
    type: TypeNode
    required: bool = True
    tags: tuple[DocTag, ...] = ()
    # None: classify from the route; True: path segment of the same name; str: explicit segment
    path_param: Union[None, bool, str] = None


@dataclass(frozen=True)
class EndpointDecl:
    owner_name: str
    method: str
    verb: Verb
    owner_module: Optional[str] = None
    args: tuple[Any, ...] = ()
    params: tuple[ParamDecl, ...] = ()
    returns: Optional[TypeNode] = None
    doc: Optional[str] = None
    location: Optional[SourceLocation] = None


@dataclass
class DeclarationSet:
    types: list[TypeDecl] = field(default_factory=list)
    classes: list[ClassDecl] = field(default_factory=list)
    endpoints: list[EndpointDecl] = field(default_factory=list)

    def extend(self, other: DeclarationSet) -> None:
        self.types.extend(other.types)
        self.classes.extend(other.classes)
        self.endpoints.extend(other.endpoints)
