import ast
import io
import json
import textwrap

import pytest

from typeroute.errors import RouterCountError
from typeroute.config import CompileOptions
from typeroute.orchestrator.pipeline import collect_declarations, compile_declarations, generate, write_outputs

APP_SRC = '''
from typing import TypedDict

from typeroute.runtime.base import ControllerBase, RouterBase
from typeroute.runtime.decorators import all, controller, get, router


class Greeting(TypedDict):
    text: str


@router("/v1")
class Api(RouterBase):
    """Greeting service."""


@controller("/hello")
class Hello(ControllerBase):
    """Says hello."""

    @get("/:name")
    def greet(self, name: str) -> Greeting:
        return {"text": f"hello {name}"}

    @all("/echo")
    def echo(self, text: str) -> str:
        return text
'''


def _project(tmp_path):
    src = tmp_path / "src" / "greeter"
    src.mkdir(parents=True)
    (src / "app.py").write_text(textwrap.dedent(APP_SRC), encoding="utf-8")
    return tmp_path / "src"


def test_generate_writes_every_artifact_to_its_stream(tmp_path):
    root = _project(tmp_path)
    streams = {name: io.StringIO() for name in ("check", "openapi", "redoc", "routes")}

    compiled = generate(
        ["**/*.py"],
        None,
        "greeter",
        root,
        check_file=streams["check"],
        openapi_file=streams["openapi"],
        redoc_file=streams["redoc"],
        routes_file=streams["routes"],
        debug=True,
    )

    doc = json.loads(streams["openapi"].getvalue())
    assert doc == compiled.openapi
    assert doc["info"] == {"version": "1.0.0", "title": "greeter", "description": "Greeting service."}
    assert doc["tags"] == [{"name": "Hello", "description": "Says hello."}]
    assert "Greeting" in doc["components"]["schemas"]

    # generated modules are valid Python
    ast.parse(streams["check"].getvalue())
    ast.parse(streams["routes"].getvalue())
    assert "from greeter.app import Hello as Hello_controller" in streams["routes"].getvalue()
    assert "store = await read_merged(request)" in streams["routes"].getvalue()
    assert "/v1/doc-static/openapi.json" in streams["redoc"].getvalue()


def test_route_summaries(tmp_path):
    decls = collect_declarations(["**/*.py"], _project(tmp_path))
    compiled = compile_declarations(decls, "greeter", tmp_path / "src")
    greet = compiled.routes[0]

    assert (greet.method, greet.path, greet.handler, greet.controller) == ("GET", "/v1/hello/{name}", "greet", "Hello")
    assert greet.operation_id == "Hello-greet"
    assert greet.file_path.endswith("app.py")
    assert len(compiled.routes) == 6


def test_write_outputs_layout(tmp_path):
    decls = collect_declarations(["**/*.py"], _project(tmp_path))
    compiled = compile_declarations(decls, "greeter", tmp_path / "src")
    out = tmp_path / "out"
    written = write_outputs(compiled, out)

    assert sorted(p.relative_to(out).as_posix() for p in written) == [
        "_check.py",
        "_routes.py",
        "docs/openapi.json",
        "docs/redoc.html",
    ]
    assert json.loads((out / "docs" / "openapi.json").read_text(encoding="utf-8"))["openapi"] == "3.0.0"


def test_nothing_is_written_when_compilation_fails(tmp_path):
    (tmp_path / "empty.py").write_text("x = 1\n", encoding="utf-8")
    streams = [io.StringIO() for _ in range(4)]
    with pytest.raises(RouterCountError):
        generate(["*.py"], None, "none", tmp_path, *streams)
    assert all(s.getvalue() == "" for s in streams)


def test_sources_are_read_with_the_configured_encoding(tmp_path):
    src = tmp_path / "src" / "cafe"
    src.mkdir(parents=True)
    (src / "menu.py").write_bytes('class Dish:\n    """Caf\xe9 special."""\n\n    name: str\n'.encode("latin-1"))

    decls = collect_declarations(["**/*.py"], tmp_path / "src", CompileOptions(encoding="latin-1"))
    assert [t.doc for t in decls.types] == ["Caf\xe9 special."]

    # not valid utf-8, so the file is skipped
    assert collect_declarations(["**/*.py"], tmp_path / "src").types == []
