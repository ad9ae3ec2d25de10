from __future__ import annotations

from typing import Any, Optional

from typeroute.domain.types import SourceLocation


class TyperouteError(Exception):
    """
    Base for every error raised by typeroute.
    Carries a short machine code and an optional source location.
    """

    code = "error"

    def __init__(self, message: str, location: Optional[SourceLocation] = None, **context: Any):
        self.message = message
        self.location = location
        self.context = context
        super().__init__(self._render())

    def _render(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.message} ({self.location})"


class ConfigurationError(TyperouteError):
    """Fatal: the API definition cannot be compiled. Aborts generation."""

    code = "configuration"


class RouterCountError(ConfigurationError):
    code = "router_count"


class DuplicateDeclarationError(ConfigurationError):
    code = "duplicate_declaration"


class UndeclaredTypeError(ConfigurationError):
    code = "undeclared_type"


class TagMismatchError(ConfigurationError):
    code = "tag_mismatch"


class UnsupportedTypeError(ConfigurationError):
    code = "unsupported_type"


class AmbiguousTypeLiteralError(ConfigurationError):
    code = "ambiguous_type_literal"


class LiteralTypeError(ConfigurationError):
    code = "literal_type"


class SchemaOrderError(ConfigurationError):
    code = "schema_order"


class AnnotationError(TyperouteError):
    """
    A single declaration could not be read (bad decorator arguments,
    unknown verb, unparsable annotation). Logged, then skipped.
    """

    code = "annotation"


class HttpError(Exception):
    """
    Raised by handlers to answer with a specific status.
    `body` is sent as-is when given, else {"error": {"message": ...}}.
    """

    def __init__(self, status: int, message: str = "", body: Any = None):
        self.status = status
        self.message = message or f"HTTP {status}"
        self.body = body
        super().__init__(self.message)

    def to_body(self) -> Any:
        if self.body is not None:
            return self.body
        return {"error": {"message": self.message}}


class ParameterValidationError(HttpError):
    def __init__(self, path: str, message: str):
        self.path = path
        self.reason = message
        super().__init__(400, f"parameterList{path} {message}")
