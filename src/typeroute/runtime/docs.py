from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.openapi.docs import get_swagger_ui_html
from starlette.responses import FileResponse


def add_doc_routes(
    router: APIRouter,
    prefix: str,
    docs_dir: Path,
    openapi_file: str = "openapi.json",
    redoc_file: str = "redoc.html",
    title: str = "API documentation",
) -> None:
    """
    Serve the generated documents:
      <prefix>/docs              Swagger UI
      <prefix>/redoc             ReDoc page
      <prefix>/doc-static/<f>    files of the docs directory
    """
    prefix = prefix.rstrip("/")
    docs_dir = Path(docs_dir).resolve()
    spec_url = f"{prefix}/doc-static/{openapi_file}"

    async def swagger_ui():
        return get_swagger_ui_html(openapi_url=spec_url, title=title)

    async def redoc():
        return FileResponse(docs_dir / redoc_file, media_type="text/html")

    async def doc_static(name: str):
        target = (docs_dir / name).resolve()
        if target.parent != docs_dir or not target.is_file():
            raise HTTPException(status_code=404, detail="Not Found")
        return FileResponse(target)

    router.add_api_route(f"{prefix}/docs", swagger_ui, methods=["GET"], include_in_schema=False)
    router.add_api_route(f"{prefix}/redoc", redoc, methods=["GET"], include_in_schema=False)
    router.add_api_route(f"{prefix}/doc-static/{{name}}", doc_static, methods=["GET"], include_in_schema=False)
