import pytest

from typeroute.analyzer.builder import build_symbol_table
from typeroute.analyzer.definitions import compile_members
from typeroute.analyzer.relevance import RelevanceMarker
from typeroute.analyzer.symtab import DeclIndex
from typeroute.domain.declarations import DeclarationSet, MemberDecl, TypeDecl
from typeroute.domain.types import STRING, ArrayOf, ref, union
from typeroute.errors import UndeclaredTypeError


def _table(*types):
    table = build_symbol_table(DeclarationSet(types=list(types)))
    compile_members(table)
    return table


def _relevant(table):
    return sorted(e.schema_ref_id for e in table.types() if e.relevant)


def test_acyclic_closure_marks_reachable_types_only():
    table = _table(
        TypeDecl("User", members=(MemberDecl("address", ref("Address")),)),
        TypeDecl("Address", members=(MemberDecl("tags", ArrayOf(ref("Tag"))),)),
        TypeDecl("Tag", members=(MemberDecl("name", STRING),)),
        TypeDecl("Unused", members=(MemberDecl("name", STRING),)),
    )
    RelevanceMarker(table).mark(ref("User"))
    assert _relevant(table) == ["Address", "Tag", "User"]


def test_cyclic_graph_terminates():
    table = _table(
        TypeDecl("Node", members=(MemberDecl("children", ArrayOf(ref("Node"))), MemberDecl("owner", ref("Owner")))),
        TypeDecl("Owner", members=(MemberDecl("root", ref("Node")),)),
    )
    RelevanceMarker(table).mark(ref("Owner"))
    assert _relevant(table) == ["Node", "Owner"]


def test_aliases_and_bases_are_followed():
    table = _table(
        TypeDecl("Base", members=(MemberDecl("id", STRING),)),
        TypeDecl("Child", bases=(ref("Base"),), members=(MemberDecl("name", STRING),)),
        TypeDecl("Either", alias_of=union(ref("Child"), STRING)),
    )
    RelevanceMarker(table).mark(ref("Either"))
    assert _relevant(table) == ["Base", "Child", "Either"]
    assert table.get(DeclIndex("Child")).inherits == [DeclIndex("Base")]


def test_builtin_wrappers_only_walk_their_arguments():
    table = _table(TypeDecl("User", members=(MemberDecl("id", STRING),)))
    RelevanceMarker(table).mark(ref("Promise", ref("Res", ref("User"))))
    assert _relevant(table) == ["User"]


def test_undeclared_reference_is_fatal():
    table = _table()
    with pytest.raises(UndeclaredTypeError):
        RelevanceMarker(table).mark(ref("Missing"))
