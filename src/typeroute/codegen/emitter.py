from __future__ import annotations

import ast
import copy
import textwrap
from typing import Any, Iterable, Union

Replacement = Union[str, ast.expr, list]

HEADER = "# Generated by typeroute. Do not edit by hand."


class _Substitute(ast.NodeTransformer):
    """
    Replace placeholder identifiers in a parsed template.
    - Name: str renames, ast.expr replaces the expression
    - bare `PLACEHOLDER` statements are spliced with a list of statements
    - string constants equal to a placeholder become that value
    - function, argument and import alias names are renamed
    """

    def __init__(self, mapping: dict[str, Replacement]):
        self.mapping = mapping

    def _lookup(self, key: str) -> Any:
        value = self.mapping.get(key)
        if isinstance(value, ast.AST):
            return copy.deepcopy(value)
        if isinstance(value, list):
            return [copy.deepcopy(v) for v in value]
        return value

    def visit_Expr(self, node: ast.Expr) -> Any:
        if isinstance(node.value, ast.Name) and isinstance(self.mapping.get(node.value.id), list):
            return self._lookup(node.value.id)
        return self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> Any:
        value = self._lookup(node.id)
        if value is None:
            return node
        if isinstance(value, str):
            return ast.copy_location(ast.Name(id=value, ctx=node.ctx), node)
        return value

    def visit_Constant(self, node: ast.Constant) -> Any:
        if not isinstance(node.value, str) or node.value not in self.mapping:
            return node
        value = self._lookup(node.value)
        if isinstance(value, str):
            return ast.copy_location(ast.Constant(value=value), node)
        return value

    def _rename_def(self, node: Any) -> Any:
        self.generic_visit(node)
        value = self.mapping.get(node.name)
        if isinstance(value, str):
            node.name = value
        return node

    visit_FunctionDef = _rename_def
    visit_AsyncFunctionDef = _rename_def

    def visit_arg(self, node: ast.arg) -> Any:
        self.generic_visit(node)
        value = self.mapping.get(node.arg)
        if isinstance(value, str):
            node.arg = value
        return node

    def visit_alias(self, node: ast.alias) -> Any:
        for attr in ("name", "asname"):
            value = self.mapping.get(getattr(node, attr) or "")
            if isinstance(value, str):
                setattr(node, attr, value)
        return node


def statements(source: str, **mapping: Replacement) -> list[ast.stmt]:
    """Parse a statement template and substitute its placeholders."""
    tree = ast.parse(textwrap.dedent(source))
    tree = _Substitute(mapping).visit(tree)
    return tree.body


def expression(source: str, **mapping: Replacement) -> ast.expr:
    tree = ast.parse(textwrap.dedent(source).strip(), mode="eval")
    tree = _Substitute(mapping).visit(tree)
    return tree.body


def literal(value: Any) -> ast.expr:
    """Expression node for a JSON-like value (dict, list, str, number, bool, None)."""
    return ast.parse(repr(value), mode="eval").body


def name(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Load())


def call(func: ast.expr, args: Iterable[ast.expr] = ()) -> ast.Call:
    return ast.Call(func=func, args=list(args), keywords=[])


def method_call(target: str, method: str, args: Iterable[ast.expr] = ()) -> ast.Call:
    return call(ast.Attribute(value=name(target), attr=method, ctx=ast.Load()), args)


def render(body: list[ast.stmt]) -> str:
    """
    Render a module. Consecutive imports stay together, other top-level
    statements are separated by blank lines.
    """
    module = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(module)
    out = [HEADER, ""]
    previous = None
    for stmt in module.body:
        text = ast.unparse(stmt)
        if previous is not None:
            both_imports = _is_import(previous) and _is_import(stmt)
            if not both_imports:
                out.append("\n" if _is_def(stmt) or _is_def(previous) else "")
        out.append(text)
        previous = stmt
    return "\n".join(out) + "\n"


def _is_import(stmt: ast.stmt) -> bool:
    return isinstance(stmt, (ast.Import, ast.ImportFrom))


def _is_def(stmt: ast.stmt) -> bool:
    return isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef))
