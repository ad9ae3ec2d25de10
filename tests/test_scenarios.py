import pytest
from structlog.testing import capture_logs

from typeroute.domain.declarations import ClassDecl, DeclarationSet, EndpointDecl, MemberDecl, ParamDecl, TypeDecl
from typeroute.domain.types import INTEGER, NUMBER, STRING, VOID, LiteralOf, MappedOf, obj, ref, union
from typeroute.errors import ConfigurationError, RouterCountError
from typeroute.orchestrator.pipeline import compile_declarations


def _api(*endpoints, controllers=None, types=(), router_path="/api"):
    classes = [ClassDecl("Api", "router", module="app.api", args=(router_path,))]
    classes.extend(controllers or [ClassDecl("UserController", "controller", module="app.user", args=("/user",))])
    return DeclarationSet(types=list(types), classes=classes, endpoints=list(endpoints))


def _load_checks(source):
    namespace = {}
    exec(compile(source, "_check.py", "exec"), namespace)
    return namespace["checks"]


def _get_user():
    return EndpointDecl(
        "UserController",
        "get_user",
        "get",
        owner_module="app.user",
        args=("/:userId",),
        params=(ParamDecl("userId", STRING),),
        returns=obj(id=STRING, name=STRING),
    )


def test_path_parameter_and_response_schema():
    compiled = compile_declarations(_api(_get_user()), "demo")
    op = compiled.openapi["paths"]["/api/user/{userId}"]["get"]

    assert op["operationId"] == "UserController-get_user"
    assert op["parameters"] == [{"name": "userId", "in": "path", "schema": {"type": "string"}, "required": True}]
    assert op["responses"]["200"]["content"]["application/json"]["schema"] == {
        "type": "object",
        "properties": {"id": {"type": "string"}, "name": {"type": "string"}},
        "required": ["id", "name"],
    }
    assert compiled.openapi["openapi"] == "3.0.0"
    assert compiled.openapi["info"]["title"] == "demo"


def test_validator_accepts_empty_arguments_for_path_only_endpoint():
    compiled = compile_declarations(_api(_get_user()), "demo")
    check = _load_checks(compiled.check_source)["UserController.get_user"]

    obj_ = check.args_to_schema([])
    assert obj_ == {}
    assert check.validate(obj_).valid
    assert check.schema_to_args({"userId": "42"}) == ["42"]


def test_post_with_two_parameters_synthesizes_a_body_type():
    ep = EndpointDecl(
        "UserController",
        "add",
        "post",
        owner_module="app.user",
        args=("/",),
        params=(ParamDecl("a", STRING), ParamDecl("b", NUMBER)),
        returns=NUMBER,
    )
    compiled = compile_declarations(_api(ep), "demo")
    op = compiled.openapi["paths"]["/api/user"]["post"]

    assert op["requestBody"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/UserControllerAddBody"
    }
    body = compiled.openapi["components"]["schemas"]["UserControllerAddBody"]
    assert body["properties"] == {"a": {"type": "string"}, "b": {"type": "number"}}
    assert body["required"] == ["a", "b"]
    assert "parameters" not in op

    assert "store = await read_body(request)" in compiled.routes_source
    assert "arg_a = store.get('a')" in compiled.routes_source
    assert "controller.add(arg_a, arg_b)" in compiled.routes_source


def test_explicit_status_is_the_only_response():
    ep = EndpointDecl(
        "UserController",
        "missing",
        "get",
        owner_module="app.user",
        returns=ref("Res", LiteralOf(404), obj(error=STRING)),
    )
    compiled = compile_declarations(_api(ep), "demo")
    responses = compiled.openapi["paths"]["/api/user/missing"]["get"]["responses"]

    assert list(responses) == ["404"]
    assert responses["404"]["content"]["application/json"]["schema"] == {
        "type": "object",
        "properties": {"error": {"type": "string"}},
        "required": ["error"],
    }


def test_same_named_types_from_two_modules_get_distinct_ids():
    types = [
        TypeDecl("Item", module="app.shop", members=(MemberDecl("sku", STRING),)),
        TypeDecl("Item", module="app.blog", members=(MemberDecl("title", STRING),)),
    ]
    eps = [
        EndpointDecl("UserController", "product", "get", owner_module="app.user", returns=ref("Item", module="app.shop")),
        EndpointDecl("UserController", "post", "get", owner_module="app.user", returns=ref("Item", module="app.blog")),
    ]
    compiled = compile_declarations(_api(*eps, types=types), "demo")
    schemas = compiled.openapi["components"]["schemas"]

    assert schemas["Item"]["properties"] == {"sku": {"type": "string"}}
    assert schemas["Item-2"]["properties"] == {"title": {"type": "string"}}
    assert "'Item-2'" in compiled.check_source


def test_controller_level_path_parameters():
    controller = ClassDecl("Members", "controller", module="app.org", args=("/org/:orgId",))
    ep = EndpointDecl(
        "Members",
        "get_member",
        "get",
        owner_module="app.org",
        args=("/:memberId",),
        params=(ParamDecl("orgId", STRING), ParamDecl("memberId", STRING), ParamDecl("verbose", STRING, required=False)),
    )
    compiled = compile_declarations(_api(ep, controllers=[controller]), "demo")
    op = compiled.openapi["paths"]["/api/org/{orgId}/{memberId}"]["get"]

    by_name = {p["name"]: p for p in op["parameters"]}
    assert by_name["orgId"]["in"] == "path"
    assert by_name["memberId"]["in"] == "path"
    assert by_name["verbose"] == {"name": "verbose", "in": "query", "schema": {"type": "string"}, "required": False}

    check = _load_checks(compiled.check_source)["Members.get_member"]
    assert "required" not in check.schema
    assert check.validate({}).valid


def test_all_verb_expands_to_every_method():
    ep = EndpointDecl("UserController", "echo", "all", owner_module="app.user", params=(ParamDecl("text", STRING),))
    compiled = compile_declarations(_api(ep), "demo")
    item = compiled.openapi["paths"]["/api/user/echo"]

    assert sorted(item) == ["delete", "get", "patch", "post", "put"]
    assert item["put"]["operationId"] == "UserController-echo-put"
    assert "requestBody" in item["post"]
    assert item["get"]["parameters"][0]["in"] == "query"
    assert [r.method for r in compiled.routes] == ["GET", "POST", "PUT", "PATCH", "DELETE"]


def test_unreachable_types_are_not_emitted():
    types = [
        TypeDecl("User", module="app.user", members=(MemberDecl("id", STRING),)),
        TypeDecl("Secret", module="app.user", members=(MemberDecl("key", STRING),)),
    ]
    ep = EndpointDecl("UserController", "me", "get", owner_module="app.user", returns=ref("User"))
    compiled = compile_declarations(_api(ep, types=types), "demo")

    assert "User" in compiled.openapi["components"]["schemas"]
    assert "Secret" not in compiled.openapi["components"]["schemas"]


def test_exactly_one_router_is_required():
    no_router = DeclarationSet(classes=[ClassDecl("C", "controller", module="m")])
    with pytest.raises(RouterCountError, match="No router"):
        compile_declarations(no_router, "demo")

    two = DeclarationSet(classes=[ClassDecl("A", "router", module="m"), ClassDecl("B", "router", module="m")])
    with pytest.raises(RouterCountError, match="Multiple router"):
        compile_declarations(two, "demo")


def test_explicit_status_must_be_a_literal():
    ep = EndpointDecl("UserController", "bad", "get", owner_module="app.user", returns=ref("Res", NUMBER, STRING))
    with pytest.raises(ConfigurationError):
        compile_declarations(_api(ep), "demo")


def _responses(returns):
    ep = EndpointDecl("UserController", "fetch", "get", owner_module="app.user", returns=returns)
    return compile_declarations(_api(ep), "demo").openapi["paths"]["/api/user/fetch"]["get"]["responses"]


A_SCHEMA = {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]}
B_SCHEMA = {"type": "object", "properties": {"b": {"type": "number"}}, "required": ["b"]}


def test_same_status_responses_merge_inside_the_content_schema():
    merged = _responses(union(ref("Res", LiteralOf(200), obj(a=STRING)), ref("Res", LiteralOf(200), obj(b=NUMBER))))
    assert list(merged) == ["200"]
    assert merged["200"]["content"]["application/json"] == {"schema": {"oneOf": [A_SCHEMA, B_SCHEMA]}}

    plain = _responses(union(obj(a=STRING), obj(b=NUMBER)))
    assert plain["200"]["content"]["application/json"]["schema"] == {"oneOf": [A_SCHEMA, B_SCHEMA]}


def test_file_results_are_binary_responses():
    responses = _responses(ref("FileRef", LiteralOf("image/png")))
    assert responses["200"]["content"] == {"image/png": {"schema": {"type": "string", "format": "binary"}}}


def test_nothing_returned_is_no_content():
    assert list(_responses(VOID)) == ["204"]


def test_single_body_parameter_reuses_its_reference():
    types = [
        TypeDecl("Base", module="app.user", members=(MemberDecl("id", INTEGER),)),
        TypeDecl(
            "Profile",
            module="app.user",
            bases=(ref("Base"),),
            members=(MemberDecl("name", STRING), MemberDecl("labels", MappedOf(STRING, STRING))),
        ),
    ]
    ep = EndpointDecl(
        "UserController",
        "save",
        "put",
        owner_module="app.user",
        params=(ParamDecl("profile", ref("Profile")),),
    )
    compiled = compile_declarations(_api(ep, types=types), "demo")
    body = compiled.openapi["paths"]["/api/user/save"]["put"]["requestBody"]

    assert body["required"] is True
    assert body["content"]["application/json"] == {"schema": {"$ref": "#/components/schemas/Profile"}}
    form = body["content"]["application/x-www-form-urlencoded"]
    assert sorted(form["schema"]["properties"]) == ["id", "labels", "name"]
    assert form["encoding"] == {"labels": {"contentType": "application/json"}}

    check = _load_checks(compiled.check_source)["UserController.save"]
    assert check.schema["required"] == ["id", "name", "labels"]
    assert check.schema_to_args({"id": 1}) == [{"id": 1}]
    assert "arg_profile['name'] = value" in compiled.routes_source


def test_endpoints_without_a_controller_are_dropped():
    ghost = EndpointDecl("Ghost", "haunt", "get", owner_module="app.user", returns=STRING)
    with capture_logs() as logs:
        compiled = compile_declarations(_api(_get_user(), ghost), "demo")

    assert [r.handler for r in compiled.routes] == ["get_user"]
    dropped = [e for e in logs if e["event"] == "endpoint_dropped"]
    assert dropped and dropped[0]["owner"] == "Ghost"
