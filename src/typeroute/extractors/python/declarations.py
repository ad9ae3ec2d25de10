from __future__ import annotations

import ast
import inspect
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import structlog

from typeroute.domain.declarations import (
    ClassDecl,
    DeclarationSet,
    EndpointDecl,
    MemberDecl,
    ParamDecl,
    TypeDecl,
)
from typeroute.errors import AnnotationError
from typeroute.extractors.python.annotations import (
    AnnotationReader,
    ModuleScope,
    is_alias_value,
    split_doc,
)

logger = structlog.get_logger(__name__)

_ROLES = {"router": "router", "controller": "controller"}
_VERBS = {"get": "get", "post": "post", "put": "put", "patch": "patch", "delete": "delete", "all": "all", "all_": "all"}

# bases that mark a class as a plain record rather than an extending interface
_RECORD_BASES = {
    "TypedDict", "BaseModel", "object", "Generic", "Protocol", "NamedTuple",
    "RouterBase", "ControllerBase",
}


def module_name_for(path: Path, source_root: Path) -> str:
    """
    Dotted module path of a file under source_root:
      pkg/models.py    -> pkg.models
      pkg/__init__.py  -> pkg
    """
    rel = Path(path).resolve().relative_to(Path(source_root).resolve())
    parts = list(rel.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def extract_declarations_from_source(source: str, module: str, file_path: str = "") -> DeclarationSet:
    """
    Read router, controller and type declarations from Python source.
    Uses ast only; does not import/execute code.
    A declaration that cannot be read is logged and skipped.
    """
    try:
        tree = ast.parse(source)
    except SyntaxError as e:
        logger.warning("syntax_error", file=file_path, line=e.lineno, error=e.msg)
        return DeclarationSet()
    return _ModuleExtractor(tree, module, file_path).extract()


def extract_declarations(
    paths: Iterable[Union[str, Path]],
    source_root: Union[str, Path],
    encoding: str = "utf-8",
) -> DeclarationSet:
    out = DeclarationSet()
    for p in paths:
        path = Path(p)
        try:
            source = path.read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("unreadable_source", file=str(path), error=str(e))
            continue
        decls = extract_declarations_from_source(source, module_name_for(path, Path(source_root)), str(path.resolve()))
        logger.debug(
            "declarations_read",
            file=str(path),
            types=len(decls.types),
            classes=len(decls.classes),
            endpoints=len(decls.endpoints),
        )
        out.extend(decls)
    return out


class _ModuleExtractor:
    def __init__(self, tree: ast.Module, module: str, file_path: str):
        self.tree = tree
        self.scope = ModuleScope(module=module, file=file_path)
        self.reader = AnnotationReader(self.scope)
        self.is_package = Path(file_path).name == "__init__.py"

    def extract(self) -> DeclarationSet:
        self._collect_names()
        out = DeclarationSet()
        types: dict[str, TypeDecl] = {}

        for node in self.tree.body:
            try:
                if isinstance(node, ast.ClassDef):
                    role = self._role(node)
                    if role is not None:
                        out.classes.append(self._class_decl(node, role))
                        if role == "controller":
                            out.endpoints.extend(self._endpoints(node))
                    elif self._is_record(node):
                        types[node.name] = self._type_decl(node)
                else:
                    alias = self._alias(node)
                    if alias is not None:
                        types[alias.name] = alias
            except AnnotationError as e:
                logger.error("annotation_error", file=self.scope.file, line=getattr(node, "lineno", 0), error=e.message)

        # rebinding a name keeps the last declaration
        out.types.extend(types.values())
        return out

    # names

    def _collect_names(self) -> None:
        for node in ast.walk(self.tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    local = alias.asname or alias.name.split(".")[0]
                    target = alias.name if alias.asname else alias.name.split(".")[0]
                    self.scope.imports[local] = (target, None)
            elif isinstance(node, ast.ImportFrom):
                base = self._import_base(node)
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    self.scope.imports[alias.asname or alias.name] = (base, alias.name)
            elif isinstance(node, ast.ClassDef):
                self.scope.local_types.add(node.name)
                for tp in getattr(node, "type_params", ()) or ():
                    self.scope.type_vars.add(tp.name)
            elif isinstance(node, ast.Assign) and _is_typevar(node.value):
                for target in node.targets:
                    if isinstance(target, ast.Name):
                        self.scope.type_vars.add(target.id)
            elif isinstance(node, ast.AnnAssign) and _is_type_alias_marker(node):
                self.scope.local_types.add(node.target.id)
            elif _TYPE_ALIAS_NODE is not None and isinstance(node, _TYPE_ALIAS_NODE):
                self.scope.local_types.add(node.name.id)

        for node in self.tree.body:
            if isinstance(node, ast.Assign) and len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
                if is_alias_value(node.value, self.reader):
                    self.scope.local_types.add(node.targets[0].id)

    def _import_base(self, node: ast.ImportFrom) -> str:
        if not node.level:
            return node.module or ""
        parts = self.scope.module.split(".") if self.scope.module else []
        # a module's own name is not part of its package
        drop = node.level - 1 if self.is_package else node.level
        parts = parts[: len(parts) - drop] if drop else parts
        if node.module:
            parts.append(node.module)
        return ".".join(parts)

    # routers and controllers

    def _role(self, node: ast.ClassDef) -> Optional[str]:
        for dec in node.decorator_list:
            target = dec.func if isinstance(dec, ast.Call) else dec
            name, _ = self.reader.resolve(target)
            if name in _ROLES:
                return _ROLES[name]
        return None

    def _class_decl(self, node: ast.ClassDef, role: str) -> ClassDecl:
        args: tuple[Any, ...] = ()
        for dec in node.decorator_list:
            target = dec.func if isinstance(dec, ast.Call) else dec
            name, _ = self.reader.resolve(target)
            if name in _ROLES and isinstance(dec, ast.Call):
                args = self._literal_args(dec, keyword="prefix" if role == "router" else "path")
        doc, _ = split_doc(ast.get_docstring(node))
        return ClassDecl(
            name=node.name,
            role=role,
            module=self.scope.module,
            args=args,
            doc=doc,
            file_name=self.scope.file,
            location=self.scope.location(node),
        )

    def _literal_args(self, call: ast.Call, keyword: str) -> tuple[Any, ...]:
        values = list(call.args) + [kw.value for kw in call.keywords if kw.arg == keyword]
        out = []
        for v in values:
            try:
                out.append(ast.literal_eval(v))
            except ValueError:
                raise AnnotationError(
                    f"decorator arguments must be literals, got {ast.unparse(v)}",
                    self.scope.location(call),
                ) from None
        return tuple(out)

    def _endpoints(self, node: ast.ClassDef) -> list[EndpointDecl]:
        out = []
        for item in node.body:
            if not isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            try:
                ep = self._endpoint(node, item)
            except AnnotationError as e:
                logger.error("annotation_error", file=self.scope.file, line=item.lineno, error=e.message)
                continue
            if ep is not None:
                out.append(ep)
        return out

    def _endpoint(self, owner: ast.ClassDef, func: Union[ast.FunctionDef, ast.AsyncFunctionDef]) -> Optional[EndpointDecl]:
        verb = None
        args: tuple[Any, ...] = ()
        for dec in func.decorator_list:
            target = dec.func if isinstance(dec, ast.Call) else dec
            name, _ = self.reader.resolve(target)
            if name in _VERBS:
                verb = _VERBS[name]
                if isinstance(dec, ast.Call):
                    args = self._literal_args(dec, keyword="path")
        if verb is None:
            return None

        if func.args.kwonlyargs or func.args.vararg or func.args.kwarg:
            raise AnnotationError(f"endpoint {owner.name}.{func.name} must take positional parameters only", self.scope.location(func))

        positional = list(func.args.posonlyargs) + list(func.args.args)
        if positional and positional[0].arg in ("self", "cls"):
            positional = positional[1:]
        first_default = len(positional) - len(func.args.defaults)

        params = []
        for i, arg in enumerate(positional):
            ann = self.reader.read(arg.annotation)
            params.append(
                ParamDecl(
                    name=arg.arg,
                    type=ann.type,
                    required=i < first_default and not ann.not_required,
                    tags=ann.tags,
                    path_param=ann.path_param,
                )
            )

        doc, _ = split_doc(ast.get_docstring(func))
        return EndpointDecl(
            owner_name=owner.name,
            method=func.name,
            verb=verb,
            owner_module=self.scope.module,
            args=args,
            params=tuple(params),
            returns=self.reader.returns(func.returns),
            doc=doc,
            location=self.scope.location(func),
        )

    # types

    def _is_record(self, node: ast.ClassDef) -> bool:
        if any(isinstance(item, ast.AnnAssign) for item in node.body):
            return True
        return any(self.reader.resolve(b)[0] in ("TypedDict", "BaseModel") for b in node.bases)

    def _type_decl(self, node: ast.ClassDef) -> TypeDecl:
        total = True
        for kw in node.keywords:
            if kw.arg == "total" and isinstance(kw.value, ast.Constant):
                total = bool(kw.value.value)

        bases = []
        for b in node.bases:
            head = b.value if isinstance(b, ast.Subscript) else b
            name, _ = self.reader.resolve(head)
            if name in _RECORD_BASES:
                continue
            bases.append(self.reader.type_of(b))

        members = []
        nested = []
        body = node.body
        for i, item in enumerate(body):
            if isinstance(item, ast.ClassDef) and self._is_record(item):
                nested.append(self._type_decl(item))
                continue
            if not isinstance(item, ast.AnnAssign) or not isinstance(item.target, ast.Name):
                continue
            name = item.target.id
            if name.startswith("_") or _is_classvar(item.annotation, self.reader):
                continue
            ann = self.reader.read(item.annotation)
            attr_doc = _attribute_doc(body, i)
            doc, tags = split_doc(attr_doc)
            members.append(
                MemberDecl(
                    name=name,
                    type=ann.type,
                    optional=(not total) or ann.not_required or _has_default(item.value, self.reader),
                    doc=doc,
                    tags=ann.tags + tags,
                    location=self.scope.location(item),
                )
            )

        doc, tags = split_doc(ast.get_docstring(node))
        return TypeDecl(
            name=node.name,
            module=self.scope.module,
            members=tuple(members),
            bases=tuple(bases),
            doc=doc,
            tags=tags,
            location=self.scope.location(node),
            nested=tuple(nested),
        )

    def _alias(self, node: ast.stmt) -> Optional[TypeDecl]:
        if isinstance(node, ast.AnnAssign) and _is_type_alias_marker(node) and node.value is not None:
            return self._alias_decl(node.target.id, node.value, node)
        if _TYPE_ALIAS_NODE is not None and isinstance(node, _TYPE_ALIAS_NODE):
            return self._alias_decl(node.name.id, node.value, node)
        if isinstance(node, ast.Assign) and len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
            if is_alias_value(node.value, self.reader):
                return self._alias_decl(node.targets[0].id, node.value, node)
        return None

    def _alias_decl(self, name: str, value: ast.expr, node: ast.stmt) -> TypeDecl:
        ann = self.reader.read(value)
        doc, tags = split_doc(_attribute_doc(self.tree.body, self.tree.body.index(node)))
        return TypeDecl(
            name=name,
            module=self.scope.module,
            alias_of=ann.type,
            doc=doc,
            tags=ann.tags + tags,
            location=self.scope.location(node),
        )


_TYPE_ALIAS_NODE = getattr(ast, "TypeAlias", None)


def _is_type_alias_marker(node: ast.AnnAssign) -> bool:
    ann = node.annotation
    name = ann.attr if isinstance(ann, ast.Attribute) else getattr(ann, "id", None)
    return name == "TypeAlias" and isinstance(node.target, ast.Name)


def _is_typevar(node: ast.expr) -> bool:
    if not isinstance(node, ast.Call):
        return False
    func = node.func
    name = func.attr if isinstance(func, ast.Attribute) else getattr(func, "id", None)
    return name in ("TypeVar", "ParamSpec", "TypeVarTuple")


def _is_classvar(annotation: ast.expr, reader: AnnotationReader) -> bool:
    head = annotation.value if isinstance(annotation, ast.Subscript) else annotation
    return reader.resolve(head)[0] == "ClassVar"


def _has_default(value: Optional[ast.expr], reader: AnnotationReader) -> bool:
    if value is None:
        return False
    if isinstance(value, ast.Call) and reader.resolve(value.func)[0] in ("Field", "field"):
        for kw in value.keywords:
            if kw.arg in ("default", "default_factory"):
                return True
        return bool(value.args) and not (isinstance(value.args[0], ast.Constant) and value.args[0].value is Ellipsis)
    return True


def _attribute_doc(body: list[ast.stmt], index: int) -> Optional[str]:
    """The string literal right after a statement, if any."""
    if index + 1 >= len(body):
        return None
    nxt = body[index + 1]
    if isinstance(nxt, ast.Expr) and isinstance(nxt.value, ast.Constant) and isinstance(nxt.value.value, str):
        return inspect.cleandoc(nxt.value.value)
    return None
