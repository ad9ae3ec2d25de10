from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from typeroute.domain.types import (
    BOOLEAN,
    INTEGER,
    NULL,
    NUMBER,
    OBJECT,
    STRING,
    AnyType,
    ArrayOf,
    DocTag,
    Dropped,
    LiteralOf,
    MappedOf,
    Reference,
    SourceLocation,
    TupleOf,
    TypeNode,
    TypeQuery,
    UnionOf,
    Unsupported,
)
from typeroute.runtime.params import TAG_NAMES

_SCALARS: dict[str, TypeNode] = {
    "str": STRING,
    "int": INTEGER,
    "float": NUMBER,
    "Decimal": NUMBER,
    "bool": BOOLEAN,
    "object": OBJECT,
    "None": NULL,
    "NoneType": NULL,
}

_SEQUENCES = {
    "list", "List", "Sequence", "MutableSequence", "Iterable", "Collection",
    "set", "Set", "frozenset", "FrozenSet", "AbstractSet",
}
_MAPPINGS = {"dict", "Dict", "Mapping", "MutableMapping", "OrderedDict", "DefaultDict", "defaultdict"}
_WRAPPERS = {"NotRequired", "Required", "ReadOnly", "Final", "ClassVar"}
_PROMISES = {"Awaitable", "Coroutine", "Promise"}
_DATES = {"datetime", "date"}
_BINARY = {"bytes", "bytearray"}
_CALLABLES = {"Callable"}

# constructs that make a plain assignment a type alias
ALIAS_HEADS = (
    {"Union", "Optional", "Literal", "Annotated", "tuple", "Tuple"} | _SEQUENCES | _MAPPINGS
)

_DOC_TAG = re.compile(r"^\s*@([A-Za-z_][A-Za-z0-9_]*)\s*(.*?)\s*$")


@dataclass
class ModuleScope:
    """Names visible while reading annotations in one module."""

    module: str
    file: str = ""
    # local alias -> (module, imported name or None for `import x`)
    imports: dict[str, tuple[str, Optional[str]]] = field(default_factory=dict)
    local_types: set[str] = field(default_factory=set)
    type_vars: set[str] = field(default_factory=set)

    def location(self, node: ast.AST) -> SourceLocation:
        return SourceLocation(self.file, getattr(node, "lineno", 0) or 0)


@dataclass(frozen=True)
class Annotation:
    type: TypeNode
    tags: tuple[DocTag, ...] = ()
    path_param: Union[None, bool, str] = None
    not_required: bool = False


def split_doc(text: Optional[str]) -> tuple[Optional[str], tuple[DocTag, ...]]:
    """
    Separate "@name value" tag lines from a docstring.
    Returns the remaining text (or None) and the tags.
    """
    if not text:
        return None, ()
    lines: list[str] = []
    tags: list[DocTag] = []
    for line in text.splitlines():
        m = _DOC_TAG.match(line)
        if m:
            tags.append(DocTag(m.group(1), m.group(2)))
        else:
            lines.append(line)
    doc = "\n".join(lines).strip()
    return (doc or None), tuple(tags)


class AnnotationReader:
    def __init__(self, scope: ModuleScope):
        self.scope = scope

    def resolve(self, node: ast.expr) -> tuple[Optional[str], Optional[str]]:
        """(name, module) for a Name or dotted Attribute, else (None, None)."""
        if isinstance(node, ast.Name):
            imported = self.scope.imports.get(node.id)
            if imported is not None:
                module, original = imported
                if original is None:
                    return node.id, None
                return original, module
            if node.id in self.scope.local_types:
                return node.id, self.scope.module
            return node.id, None
        if isinstance(node, ast.Attribute):
            base = node.value
            if isinstance(base, ast.Name):
                imported = self.scope.imports.get(base.id)
                if imported is not None and imported[1] is None:
                    return node.attr, imported[0]
                if imported is not None:
                    return node.attr, f"{imported[0]}.{imported[1]}"
                if base.id in self.scope.local_types:
                    return node.attr, self.scope.module
            return node.attr, None
        return None, None

    def read(self, node: Optional[ast.expr]) -> Annotation:
        """Read a member or parameter annotation, keeping its metadata."""
        if node is None:
            return Annotation(AnyType())
        head, _ = self.resolve(node.value) if isinstance(node, ast.Subscript) else (None, None)
        if head == "Annotated":
            args = _subscript_args(node)
            inner = self.read(args[0]) if args else Annotation(AnyType())
            tags = list(inner.tags)
            path_param = inner.path_param
            for meta in args[1:]:
                tags.extend(self._constraint_tags(meta))
                path_param = self._path_param(meta, path_param)
            return Annotation(inner.type, tuple(tags), path_param, inner.not_required)
        if head in _WRAPPERS:
            args = _subscript_args(node)
            inner = self.read(args[0]) if args else Annotation(AnyType())
            return Annotation(inner.type, inner.tags, inner.path_param, inner.not_required or head == "NotRequired")
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            parsed = self._forward(node)
            if parsed is not None:
                return self.read(parsed)
        return Annotation(self.type_of(node))

    def returns(self, node: Optional[ast.expr]) -> Optional[TypeNode]:
        if node is None:
            return None
        if isinstance(node, ast.Constant) and node.value is None:
            return Dropped("void")
        return self.read(node).type

    def type_of(self, node: ast.expr) -> TypeNode:
        if isinstance(node, ast.Constant):
            if node.value is None:
                return NULL
            if isinstance(node.value, str):
                parsed = self._forward(node)
                if parsed is None:
                    return Unsupported(f"forward reference {node.value!r}", self.scope.location(node))
                return self.type_of(parsed)
            return Unsupported(f"constant {node.value!r}", self.scope.location(node))
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return UnionOf(tuple(self._flatten_union(node)))
        if isinstance(node, (ast.Name, ast.Attribute)):
            return self._named(node)
        if isinstance(node, ast.Subscript):
            return self._subscript(node)
        return Unsupported(type(node).__name__, self.scope.location(node))

    def _named(self, node: ast.expr) -> TypeNode:
        name, module = self.resolve(node)
        if name is None:
            return Unsupported(type(node).__name__, self.scope.location(node))
        if name in self.scope.type_vars and module in (None, self.scope.module):
            return AnyType()
        if module is None or module in ("builtins", "typing", "typing_extensions", "datetime", "decimal"):
            builtin = self._builtin(name)
            if builtin is not None:
                return builtin
        return Reference(name, module)

    def _builtin(self, name: str) -> Optional[TypeNode]:
        if name in _SCALARS:
            return _SCALARS[name]
        if name == "Any":
            return AnyType()
        if name in _DATES:
            return Reference("Date")
        if name in _BINARY:
            return Reference("bytes")
        if name in _SEQUENCES or name in ("tuple", "Tuple"):
            return ArrayOf(AnyType())
        if name in _MAPPINGS:
            return OBJECT
        if name in _CALLABLES:
            return Dropped("function")
        if name in ("NoReturn", "Never"):
            return Dropped("never")
        return None

    def _subscript(self, node: ast.Subscript) -> TypeNode:
        head, module = self.resolve(node.value)
        args = _subscript_args(node)
        if head is None:
            return Unsupported("subscript", self.scope.location(node))

        if head == "Annotated" or head in _WRAPPERS:
            return self.read(node).type
        if head == "Optional":
            return UnionOf((self.type_of(args[0]), NULL))
        if head == "Union":
            members: list[TypeNode] = []
            for a in args:
                t = self.type_of(a)
                members.extend(t.members if isinstance(t, UnionOf) else (t,))
            return UnionOf(tuple(members))
        if head == "Literal":
            values = [self._literal_value(a) for a in args]
            if len(values) == 1:
                return values[0]
            return UnionOf(tuple(values))
        if head in _SEQUENCES:
            return ArrayOf(self.type_of(args[0]) if args else AnyType())
        if head in ("tuple", "Tuple"):
            if len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis:
                return ArrayOf(self.type_of(args[0]))
            return TupleOf(tuple(self.type_of(a) for a in args))
        if head in _MAPPINGS:
            key = self.type_of(args[0]) if args else STRING
            value = self.type_of(args[1]) if len(args) > 1 else AnyType()
            return MappedOf(key, value)
        if head in _CALLABLES:
            return Dropped("function")
        if head in ("type", "Type"):
            return TypeQuery(self.type_of(args[0]) if args else AnyType())
        if head in _PROMISES:
            return Reference("Promise", args=(self.type_of(args[-1]),) if args else ())
        if head == "Res":
            status = self._status_arg(args[0]) if args else LiteralOf(200)
            payload = (self.type_of(args[1]),) if len(args) > 1 else ()
            return Reference("Res", args=(status,) + payload)
        if head == "FileRef":
            return Reference("FileRef", args=(self._status_arg(args[0]),) if args else ())
        if head == "Generic" or head == "Protocol":
            return AnyType()
        return Reference(head, module, tuple(self.type_of(a) for a in args))

    def _status_arg(self, node: ast.expr) -> TypeNode:
        if isinstance(node, ast.Constant):
            return LiteralOf(node.value)
        return self.type_of(node)

    def _literal_value(self, node: ast.expr) -> TypeNode:
        if isinstance(node, ast.Constant):
            return LiteralOf(node.value)
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub) and isinstance(node.operand, ast.Constant):
            return LiteralOf(-node.operand.value)
        return Unsupported("literal", self.scope.location(node))

    def _flatten_union(self, node: ast.expr) -> list[TypeNode]:
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._flatten_union(node.left) + self._flatten_union(node.right)
        t = self.type_of(node)
        return list(t.members) if isinstance(t, UnionOf) else [t]

    def _forward(self, node: ast.Constant) -> Optional[ast.expr]:
        try:
            parsed = ast.parse(node.value.strip(), mode="eval").body
        except SyntaxError:
            return None
        return ast.copy_location(parsed, node)

    def _constraint_tags(self, meta: ast.expr) -> list[DocTag]:
        if not isinstance(meta, ast.Call):
            return []
        name, _ = self.resolve(meta.func)
        if name != "Constraints":
            return []
        out = []
        for kw in meta.keywords:
            if kw.arg is None or kw.arg not in TAG_NAMES:
                continue
            out.append(DocTag(TAG_NAMES[kw.arg], _literal(kw.value)))
        return out

    def _path_param(self, meta: ast.expr, current: Union[None, bool, str]) -> Union[None, bool, str]:
        target = meta.func if isinstance(meta, ast.Call) else meta
        name, _ = self.resolve(target)
        if name != "PathParam":
            return current
        if isinstance(meta, ast.Call):
            values = [a for a in meta.args] + [k.value for k in meta.keywords if k.arg == "name"]
            for v in values:
                if isinstance(v, ast.Constant) and isinstance(v.value, str):
                    return v.value
        return True


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    sl: Any = node.slice
    if isinstance(sl, ast.Index):  # pragma: no cover - python < 3.9 trees
        sl = sl.value
    if isinstance(sl, ast.Tuple):
        return list(sl.elts)
    return [sl]


def _literal(node: ast.expr) -> Any:
    try:
        return ast.literal_eval(node)
    except ValueError:
        return ast.unparse(node)


def is_alias_value(node: ast.expr, reader: AnnotationReader) -> bool:
    """Whether a plain `X = ...` assignment reads as a type alias."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return all(
            isinstance(side, (ast.Name, ast.Attribute, ast.Subscript, ast.BinOp)) or (
                isinstance(side, ast.Constant) and side.value is None
            )
            for side in (node.left, node.right)
        )
    if isinstance(node, ast.Subscript):
        head, _ = reader.resolve(node.value)
        return head in ALIAS_HEADS
    return False
