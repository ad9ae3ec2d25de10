from __future__ import annotations

import html

_REDOC_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title} - API Reference</title>
    <link href="https://fonts.googleapis.com/css?family=Montserrat:300,400,700|Roboto:300,400,700"
          rel="stylesheet">
    <style>
        body {{ margin: 0; padding: 0; }}
    </style>
</head>
<body>
    <redoc spec-url='{spec_url}'
           expand-responses="200,201"
           path-in-middle-panel>
    </redoc>
    <script src="https://cdn.redoc.ly/redoc/latest/bundles/redoc.standalone.js"></script>
</body>
</html>
"""


def doc_static_url(prefix: str, file_name: str) -> str:
    """URL under which the dispatch module serves generated documentation files."""
    return f"{prefix.rstrip('/')}/doc-static/{file_name}"


def generate_redoc_html(title: str, spec_url: str) -> str:
    return _REDOC_HTML.format(title=html.escape(title), spec_url=html.escape(spec_url, quote=True))
