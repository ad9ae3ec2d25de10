from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, TextIO

import structlog

from typeroute.analyzer.assembler import Api, assemble, connect_endpoints, mount_path
from typeroute.analyzer.builder import build_symbol_table
from typeroute.analyzer.definitions import compile_members, emit_definitions
from typeroute.analyzer.parameters import parameter_list
from typeroute.analyzer.paths import decompose
from typeroute.analyzer.relevance import mark_relevant
from typeroute.analyzer.symtab import CHECK, OPENAPI
from typeroute.codegen.check_module import generate_check_module
from typeroute.codegen.openapi import build_openapi
from typeroute.codegen.redoc import doc_static_url, generate_redoc_html
from typeroute.codegen.routes_module import generate_routes_module
from typeroute.config import CompileOptions
from typeroute.domain.declarations import DeclarationSet
from typeroute.domain.models import RouteSummary
from typeroute.extractors.python.declarations import extract_declarations
from typeroute.repo.scanner import scan_source_files

logger = structlog.get_logger(__name__)

CHECK_FILE = "_check.py"
ROUTES_FILE = "_routes.py"
DOCS_DIR = "docs"
OPENAPI_FILE = "openapi.json"
REDOC_FILE = "redoc.html"


@dataclass(frozen=True)
class CompiledApi:
    check_source: str
    routes_source: str
    openapi: dict[str, Any]
    redoc_html: str
    routes: list[RouteSummary] = field(default_factory=list)

    def openapi_json(self) -> str:
        return json.dumps(self.openapi, indent=2) + "\n"


def compile_declarations(
    decls: DeclarationSet,
    project_name: str,
    source_root: Optional[Path] = None,
) -> CompiledApi:
    """
    Compile a declaration surface into the generated artifacts.
    Order matters: members compile before definitions, the check namespace
    is emitted before the openapi one, and parameter lists come last.
    Raises ConfigurationError on fatal problems.
    """
    table = build_symbol_table(decls)
    compile_members(table)
    endpoints = connect_endpoints(table, decls.endpoints)
    api = assemble(table, endpoints)
    mark_relevant(table, api.endpoints)

    check_definitions = emit_definitions(table, CHECK)
    openapi_definitions = emit_definitions(table, OPENAPI)

    plists = [(e, parameter_list(e, table)) for e in api.endpoints]
    check_source = generate_check_module(check_definitions, plists)
    routes_source = generate_routes_module(
        api, table, source_root, check_module=Path(CHECK_FILE).stem, openapi_file=OPENAPI_FILE, redoc_file=REDOC_FILE
    )
    openapi = build_openapi(api, table, project_name, openapi_definitions)

    prefix = decompose(mount_path(api.router)).template()
    redoc_html = generate_redoc_html(project_name, doc_static_url(prefix, OPENAPI_FILE))

    routes = route_summaries(api)
    logger.debug(
        "api_compiled",
        project=project_name,
        controllers=len(api.controllers),
        endpoints=len(api.endpoints),
        definitions=len(check_definitions),
    )
    return CompiledApi(
        check_source=check_source,
        routes_source=routes_source,
        openapi=openapi,
        redoc_html=redoc_html,
        routes=routes,
    )


def route_summaries(api: Api) -> list[RouteSummary]:
    out: list[RouteSummary] = []
    for controller in api.controllers:
        for endpoint in api.endpoints_of(controller):
            for verb in endpoint.verbs():
                operation_id = f"{controller.schema_ref_id}-{endpoint.method}"
                if endpoint.verb == "all":
                    operation_id = f"{operation_id}-{verb}"
                location = endpoint.decl.location
                out.append(
                    RouteSummary(
                        method=verb.upper(),
                        path=endpoint.full_path.template() or "/",
                        handler=endpoint.method,
                        controller=controller.schema_ref_id,
                        operation_id=operation_id,
                        file_path=location.file if location else "",
                        line=location.line if location else None,
                    )
                )
    return out


def collect_declarations(
    source_patterns: Iterable[str],
    source_root: Path,
    compile_options: Optional[CompileOptions] = None,
) -> DeclarationSet:
    opts = compile_options or CompileOptions()
    files = scan_source_files(source_root, source_patterns, ignore_dirs=opts.ignore_dirs, max_files=opts.max_files)
    logger.debug("sources_found", root=str(source_root), files=len(files))
    return extract_declarations(files, source_root, encoding=opts.encoding)


def generate(
    source_patterns: Iterable[str],
    compile_options: Optional[CompileOptions],
    project_name: str,
    source_root: Path,
    check_file: TextIO,
    openapi_file: TextIO,
    redoc_file: TextIO,
    routes_file: TextIO,
    debug: bool = False,
) -> CompiledApi:
    """
    discover -> extract -> compile -> write each artifact to its stream.
    Nothing is written when compilation fails.
    """
    source_root = Path(source_root).resolve()
    decls = collect_declarations(source_patterns, source_root, compile_options)
    if debug:
        for t in decls.types:
            logger.debug("type_declared", name=t.name, module=t.module)
        for e in decls.endpoints:
            logger.debug("endpoint_declared", owner=e.owner_name, method=e.method, verb=e.verb)

    compiled = compile_declarations(decls, project_name, source_root)
    check_file.write(compiled.check_source)
    routes_file.write(compiled.routes_source)
    openapi_file.write(compiled.openapi_json())
    redoc_file.write(compiled.redoc_html)
    return compiled


def write_outputs(compiled: CompiledApi, out_dir: Path) -> list[Path]:
    """
    Layout:
      <out_dir>/_check.py
      <out_dir>/_routes.py
      <out_dir>/docs/openapi.json
      <out_dir>/docs/redoc.html
    """
    out_dir = Path(out_dir)
    docs = out_dir / DOCS_DIR
    docs.mkdir(parents=True, exist_ok=True)
    files = {
        out_dir / CHECK_FILE: compiled.check_source,
        out_dir / ROUTES_FILE: compiled.routes_source,
        docs / OPENAPI_FILE: compiled.openapi_json(),
        docs / REDOC_FILE: compiled.redoc_html,
    }
    for path, text in files.items():
        path.write_text(text, encoding="utf-8")
        logger.debug("file_written", path=str(path), bytes=len(text))
    return list(files)


def generate_to_dir(
    source_patterns: Iterable[str],
    compile_options: Optional[CompileOptions],
    project_name: str,
    source_root: Path,
    out_dir: Path,
    debug: bool = False,
) -> CompiledApi:
    """generate() into the standard output layout."""
    source_root = Path(source_root).resolve()
    decls = collect_declarations(source_patterns, source_root, compile_options)
    compiled = compile_declarations(decls, project_name, source_root)
    write_outputs(compiled, out_dir)
    return compiled
