import json
import textwrap

from typer.testing import CliRunner

from typeroute.cli import app

runner = CliRunner()

APP_SRC = '''
from typeroute.runtime.base import ControllerBase, RouterBase
from typeroute.runtime.decorators import controller, get, post, router


@router("/api")
class Api(RouterBase):
    pass


@controller("/notes")
class Notes(ControllerBase):
    @get("/:note_id")
    def read(self, note_id: int) -> str:
        ...

    @post()
    def add(self, text: str) -> int:
        ...
'''


def _project(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "notes"\n\n[tool.typeroute]\nsource_root = "src"\nout_dir = "gen"\n',
        encoding="utf-8",
    )
    pkg = tmp_path / "src" / "notes"
    pkg.mkdir(parents=True)
    (pkg / "api.py").write_text(textwrap.dedent(APP_SRC), encoding="utf-8")
    return tmp_path


def test_generate_command_writes_outputs(tmp_path):
    project = _project(tmp_path)
    result = runner.invoke(app, ["generate", str(project)])

    assert result.exit_code == 0, result.output
    assert (project / "gen" / "_check.py").is_file()
    assert (project / "gen" / "_routes.py").is_file()
    doc = json.loads((project / "gen" / "docs" / "openapi.json").read_text(encoding="utf-8"))
    assert doc["info"]["title"] == "notes"
    assert "/api/notes/{note_id}" in doc["paths"]


def test_endpoints_command_lists_routes_as_json(tmp_path):
    project = _project(tmp_path)
    result = runner.invoke(app, ["endpoints", str(project), "--format", "json", "--method", "post"])

    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [(r["method"], r["path"], r["operation_id"]) for r in rows] == [("POST", "/api/notes/add", "Notes-add")]


def test_missing_project_is_a_bad_parameter(tmp_path):
    result = runner.invoke(app, ["generate", str(tmp_path / "nope")])
    assert result.exit_code != 0


def test_configuration_errors_exit_with_status_1(tmp_path):
    (tmp_path / "lonely.py").write_text("x = 1\n", encoding="utf-8")
    result = runner.invoke(app, ["generate", str(tmp_path)])
    assert result.exit_code == 1
    assert "No router" in result.output
