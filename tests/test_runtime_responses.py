import asyncio

import pytest
from starlette.datastructures import QueryParams
from structlog.testing import capture_logs

from typeroute.errors import HttpError, ParameterValidationError
from typeroute.runtime import response
from typeroute.runtime.binding import ControllerProperties, EndpointCheckBinding
from typeroute.runtime.check import EndpointCheck
from typeroute.runtime.coerce import force_array, parse_json_if_string, read_array, settle
from typeroute.runtime.decorators import ENDPOINT_ATTR, controller, get, post, router
from typeroute.runtime.magic import FileRef, Res


def _properties(binding=None, ref=None):
    return ControllerProperties(binding, None, None, ref)


def test_success_variants():
    assert response.success({"a": 1}, _properties()).body == b'{"a":1}'

    created = response.success(Res(201, {"id": 1}), _properties())
    assert created.status_code == 201

    empty = response.success(Res(202), _properties())
    assert (empty.status_code, empty.body) == (202, b"")

    data = response.success(FileRef(content=b"png", content_type="image/png"), _properties())
    assert (data.media_type, data.body) == ("image/png", b"png")


def test_null_result_warns_and_answers_204():
    with capture_logs() as logs:
        res = response.success(None, _properties())
    assert res.status_code == 204
    assert logs[0]["event"] == "null_result"
    assert logs[0]["log_level"] == "warning"


def test_only_the_first_response_is_sent():
    props = _properties()
    first = response.success("one", props)
    second = response.error(HttpError(418), props)
    assert second is first
    assert props.responded


def test_http_errors_keep_their_status():
    res = response.error(HttpError(403, "nope"), _properties())
    assert res.status_code == 403
    assert res.body == b'{"error":{"message":"nope"}}'

    res = response.error(ParameterValidationError(".age", "is not valid"), _properties())
    assert res.status_code == 400
    assert b"parameterList.age is not valid" in res.body


def test_read_array_accepts_repeats_json_and_single_values():
    query = QueryParams("ids=1&ids=2&one=3&js=[4,5]")
    assert read_array(query, "ids") == ["1", "2"]
    assert read_array(query, "one") == ["3"]
    assert read_array(query, "js") == [4, 5]
    assert read_array(query, "missing") is None
    assert read_array({"objs": ['{"a": 1}']}, "objs", objects=True) == [{"a": 1}]


def test_small_coercions():
    assert parse_json_if_string('{"a": 1}') == {"a": 1}
    assert parse_json_if_string("plain") == "plain"
    assert force_array(3) == [3]
    assert force_array(None) is None
    assert asyncio.run(settle(asyncio.sleep(0, result=5))) == 5


def _check():
    def args_to_schema(args):
        return {"n": args[0]} if args else {}

    def schema_to_args(o):
        return [o.get("n")]

    return EndpointCheck.build(
        schema={"type": "object", "properties": {"n": {"type": "integer", "minimum": 0}}, "required": ["n"]},
        definitions={},
        args_to_schema=args_to_schema,
        schema_to_args=schema_to_args,
    )


@router("/api")
class Api:
    pass


@controller("counter")
class Counter:
    def __init__(self, properties):
        self.properties = properties

    @get("/:n")
    def double(self, n):
        return n * 2

    @post(error_handler=lambda err, props: 409)
    async def clash(self, n):
        raise ValueError("taken")


def test_decorators_record_configuration():
    assert Api.prefix == "/api"
    assert Counter.path == "/counter"
    config = getattr(Counter.double, ENDPOINT_ATTR)
    assert (config.verb, config.path) == ("get", "/:n")


def test_verb_wrapper_validates_and_coerces_arguments():
    binding = EndpointCheckBinding({"Counter.double": _check(), "Counter.clash": _check()})
    counter = Counter(_properties(binding, "Counter"))

    assert asyncio.run(counter.double("21")) == 42
    with pytest.raises(ParameterValidationError) as exc:
        asyncio.run(counter.double("-1"))
    assert exc.value.status == 400


def test_error_handler_maps_failures():
    binding = EndpointCheckBinding({"Counter.clash": _check()})
    counter = Counter(_properties(binding, "Counter"))
    with pytest.raises(HttpError) as exc:
        asyncio.run(counter.clash(1))
    assert exc.value.status == 409
