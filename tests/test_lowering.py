import pytest

from typeroute.analyzer.lowering import LowerContext, date_schema, lower
from typeroute.analyzer.symtab import CHECK, OPENAPI, DeclIndex, SymbolTable
from typeroute.domain.types import (
    BOOLEAN,
    INTEGER,
    NULL,
    NUMBER,
    STRING,
    VOID,
    AnyType,
    ArrayOf,
    ConditionalOf,
    DocTag,
    IndexedAccess,
    IndexSignature,
    LiteralOf,
    MappedOf,
    ObjectLiteral,
    Parenthesized,
    PropertySignature,
    TypeQuery,
    Unsupported,
    obj,
    ref,
    union,
)
from typeroute.errors import AmbiguousTypeLiteralError, UndeclaredTypeError, UnsupportedTypeError


def _check(node, table=None, **kw):
    return lower(node, table or SymbolTable(), LowerContext(CHECK, **kw))


def test_primitives_lower_to_their_type_keyword():
    assert _check(STRING) == {"type": "string"}
    assert _check(NUMBER) == {"type": "number"}
    assert _check(INTEGER) == {"type": "integer"}
    assert _check(BOOLEAN) == {"type": "boolean"}
    assert _check(NULL) == {"type": "null"}


def test_missing_type_is_a_plain_object():
    assert _check(None) == {"type": "object"}


def test_array_lowers_element_into_items():
    assert _check(ArrayOf(STRING)) == {"type": "array", "items": {"type": "string"}}
    assert _check(ref("Array", NUMBER)) == {"type": "array", "items": {"type": "number"}}


def test_lowering_is_idempotent():
    node = obj(a=STRING, b=ArrayOf(union(NUMBER, NULL)))
    table = SymbolTable()
    assert _check(node, table) == _check(node, table)


def test_void_lowers_to_nothing_and_drops_from_unions():
    assert _check(VOID) is None
    assert _check(union(STRING, VOID)) == {"type": "string"}
    assert _check(union(STRING, NUMBER)) == {"anyOf": [{"type": "string"}, {"type": "number"}]}


def test_any_and_dates():
    assert "anyOf" in _check(AnyType())
    assert _check(ref("Date")) == date_schema()
    assert _check(ref("datetime"))["toDate"] is True


def test_literals():
    assert _check(LiteralOf("a.b")) == {"type": "string", "pattern": r"^a\.b$"}
    assert _check(LiteralOf(3)) == {"type": "number", "minimum": 3, "maximum": 3}
    assert _check(LiteralOf(True)) == {"type": "boolean"}


def test_optional_members_are_not_required():
    node = ObjectLiteral((PropertySignature("a", STRING), PropertySignature("b", NUMBER, optional=True)))
    assert _check(node) == {
        "type": "object",
        "properties": {"a": {"type": "string"}, "b": {"type": "number"}},
        "required": ["a"],
    }


def test_member_docs_become_descriptions():
    node = ObjectLiteral((PropertySignature("a", STRING, doc="the a"),))
    assert _check(node)["properties"]["a"] == {"type": "string", "description": "the a"}


def test_index_signatures_and_mapped_types_use_additional_properties():
    node = ObjectLiteral(index_signatures=(IndexSignature(STRING, NUMBER),))
    assert _check(node) == {"type": "object", "additionalProperties": {"type": "number"}}
    assert _check(MappedOf(STRING, BOOLEAN)) == {"type": "object", "additionalProperties": {"type": "boolean"}}


def test_mixed_type_literal_is_ambiguous():
    node = ObjectLiteral((PropertySignature("a", STRING),), (IndexSignature(STRING, NUMBER),))
    with pytest.raises(AmbiguousTypeLiteralError):
        _check(node)


def test_unsupported_node_raises_with_kind():
    with pytest.raises(UnsupportedTypeError) as exc:
        _check(Unsupported("lambda"))
    assert "lambda" in str(exc.value)


def test_unknown_reference_is_a_ref_unless_expanded():
    assert _check(ref("Nope")) == {"$ref": "#/definitions/Nope"}
    with pytest.raises(UndeclaredTypeError):
        _check(ref("Nope"), expand_refs=True)


def test_tags_apply_to_the_lowered_fragment():
    out = lower(STRING, SymbolTable(), LowerContext(CHECK), [DocTag("minLength", "{2}")])
    assert out == {"type": "string", "minLength": 2}


def test_openapi_hoists_object_literals_per_enclosing_declaration():
    table = SymbolTable()
    node = obj(x=NUMBER)
    a = LowerContext(OPENAPI, enclosing=DeclIndex("A"))
    b = LowerContext(OPENAPI, enclosing=DeclIndex("B"))

    first = lower(node, table, a)
    again = lower(node, table, a)
    other = lower(node, table, b)

    assert first == {"$ref": "#/components/schemas/Intermediate1"}
    assert again == first
    assert other == {"$ref": "#/components/schemas/Intermediate2"}
    assert len(table.intermediates()) == 2


def test_check_namespace_keeps_object_literals_inline():
    table = SymbolTable()
    out = lower(obj(x=NUMBER), table, LowerContext(CHECK, enclosing=DeclIndex("A")))
    assert out["properties"] == {"x": {"type": "number"}}
    assert table.intermediates() == []


def test_conditional_types_accept_either_branch():
    node = ConditionalOf(STRING, STRING, NUMBER, BOOLEAN)
    assert _check(node) == {"anyOf": [{"type": "number"}, {"type": "boolean"}]}
    assert _check(ConditionalOf(STRING, STRING, NUMBER, VOID)) == {"type": "number"}


def test_wrapping_nodes_lower_to_their_operand():
    assert _check(Parenthesized(ArrayOf(STRING))) == {"type": "array", "items": {"type": "string"}}
    assert _check(IndexedAccess(obj(a=STRING), LiteralOf("a"))) == _check(obj(a=STRING))
    assert _check(TypeQuery(ref("User"))) == {"$ref": "#/definitions/User"}
