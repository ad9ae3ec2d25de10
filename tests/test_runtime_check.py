import datetime as dt

from typeroute.analyzer.lowering import date_schema
from typeroute.runtime.check import coerce, compile_validator


def test_query_strings_are_coerced_before_validation():
    validate = compile_validator(
        {
            "type": "object",
            "properties": {
                "limit": {"type": "integer"},
                "ratio": {"type": "number"},
                "flag": {"type": "boolean"},
                "name": {"type": "string"},
            },
        }
    )
    obj = {"limit": "10", "ratio": "0.5", "flag": "true", "name": 7}
    assert validate(obj).valid
    assert obj == {"limit": 10, "ratio": 0.5, "flag": True, "name": "7"}


def test_errors_carry_data_paths():
    validate = compile_validator(
        {"type": "object", "properties": {"tags": {"type": "array", "items": {"type": "integer"}}}}
    )
    result = validate({"tags": [1, "x"]})
    assert not result.valid
    assert result.errors[0]["path"] == ".tags[1]"


def test_references_resolve_against_definitions():
    validate = compile_validator(
        {"type": "object", "properties": {"user": {"$ref": "#/definitions/User"}}, "required": ["user"]},
        {"User": {"type": "object", "properties": {"age": {"type": "integer"}}, "required": ["age"]}},
    )
    ok = {"user": {"age": "3"}}
    assert validate(ok).valid
    assert ok["user"]["age"] == 3
    assert not validate({"user": {}}).valid


def test_precision_keyword():
    validate = compile_validator({"type": "number", "precision": 2})
    assert validate(1.25).valid
    assert not validate(1.255).valid


def test_dates_are_validated_and_converted():
    schema = {"type": "object", "properties": {"when": date_schema()}}
    validate = compile_validator(schema)

    day = {"when": "2024-05-01"}
    assert validate(day).valid
    assert day["when"] == dt.date(2024, 5, 1)

    moment = {"when": "2024-05-01T10:30:00Z"}
    assert validate(moment).valid
    assert moment["when"] == dt.datetime(2024, 5, 1, 10, 30, tzinfo=dt.timezone.utc)

    assert not validate({"when": "yesterday"}).valid


def test_empty_fields_count_as_absent_unless_strings_are_allowed():
    schema = {
        "type": "object",
        "properties": {"n": {"type": "integer"}, "s": {"type": "string"}},
        "required": ["n"],
    }
    value = coerce({"n": "", "s": ""}, schema, schema)
    assert value == {"s": ""}
    assert not compile_validator(schema)({"n": "", "s": ""}).valid


def test_most_relevant_error_comes_first():
    validate = compile_validator(
        {
            "type": "object",
            "properties": {"a": {"type": "object", "properties": {"b": {"type": "integer"}}}},
            "required": ["c"],
        }
    )
    result = validate({"a": {"b": "x"}})
    assert not result.valid
    assert len(result.errors) == 2
    assert result.errors[0] == {"path": "", "message": "'c' is a required property"}
