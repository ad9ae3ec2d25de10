from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class SourceLocation:
    file: str = ""
    line: int = 0

    def __str__(self) -> str:
        if not self.file:
            return f"line {self.line}"
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class DocTag:
    """
    A documentation constraint such as @minimum {0} or @format {uuid}.
    """

    name: str
    value: Any


PRIMITIVE_NAMES = ("string", "number", "integer", "boolean", "null", "object")


@dataclass(frozen=True)
class Primitive:
    name: str


@dataclass(frozen=True)
class AnyType:
    pass


@dataclass(frozen=True)
class Dropped:
    """
    Constructs with no JSON representation (functions, void, never).
    They lower to nothing.
    """

    kind: str = "void"


@dataclass(frozen=True)
class ArrayOf:
    element: TypeNode


@dataclass(frozen=True)
class Reference:
    name: str
    module: Optional[str] = None
    args: tuple[TypeNode, ...] = ()


@dataclass(frozen=True)
class UnionOf:
    members: tuple[TypeNode, ...]


@dataclass(frozen=True)
class IntersectionOf:
    members: tuple[TypeNode, ...]


@dataclass(frozen=True)
class TupleOf:
    elements: tuple[TypeNode, ...]


@dataclass(frozen=True)
class LiteralOf:
    value: Any


@dataclass(frozen=True)
class PropertySignature:
    name: str
    type: TypeNode
    optional: bool = False
    doc: Optional[str] = None
    tags: tuple[DocTag, ...] = ()


@dataclass(frozen=True)
class IndexSignature:
    key: TypeNode
    value: TypeNode


@dataclass(frozen=True)
class ObjectLiteral:
    members: tuple[PropertySignature, ...] = ()
    index_signatures: tuple[IndexSignature, ...] = ()


@dataclass(frozen=True)
class MappedOf:
    key: TypeNode
    value: TypeNode


@dataclass(frozen=True)
class ConditionalOf:
    check: TypeNode
    extends: TypeNode
    when_true: TypeNode
    when_false: TypeNode


@dataclass(frozen=True)
class IndexedAccess:
    object: TypeNode
    index: TypeNode


@dataclass(frozen=True)
class Parenthesized:
    inner: TypeNode


@dataclass(frozen=True)
class TypeQuery:
    target: TypeNode


@dataclass(frozen=True)
class Unsupported:
    kind: str
    location: Optional[SourceLocation] = None


TypeNode = Union[
    Primitive,
    AnyType,
    Dropped,
    ArrayOf,
    Reference,
    UnionOf,
    IntersectionOf,
    TupleOf,
    LiteralOf,
    ObjectLiteral,
    MappedOf,
    ConditionalOf,
    IndexedAccess,
    Parenthesized,
    TypeQuery,
    Unsupported,
]


STRING = Primitive("string")
NUMBER = Primitive("number")
INTEGER = Primitive("integer")
BOOLEAN = Primitive("boolean")
NULL = Primitive("null")
OBJECT = Primitive("object")
VOID = Dropped("void")


def ref(name: str, *args: TypeNode, module: Optional[str] = None) -> Reference:
    return Reference(name=name, module=module, args=tuple(args))


def union(*members: TypeNode) -> UnionOf:
    return UnionOf(tuple(members))


def obj(**members: TypeNode) -> ObjectLiteral:
    return ObjectLiteral(tuple(PropertySignature(k, v) for k, v in members.items()))
