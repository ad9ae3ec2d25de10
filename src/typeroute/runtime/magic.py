from __future__ import annotations

from pathlib import Path
from typing import Any, Generic, Optional, TypeVar, Union

StatusCode = TypeVar("StatusCode")
T = TypeVar("T")
ContentType = TypeVar("ContentType")


class Res(Generic[StatusCode, T]):
    """
    A result with an explicit HTTP status.

    Annotate as Res[Literal[404], ErrorBody]; return Res(404, {"error": ...}).
    """

    def __init__(self, status_code: int, body: Any = None, headers: Optional[dict[str, str]] = None):
        self.status_code = status_code
        self.body = body
        self.headers = headers

    def __repr__(self) -> str:
        return f"Res({self.status_code}, {self.body!r})"


class FileRef(Generic[ContentType]):
    """
    A file result, sent as-is. Annotate as FileRef[Literal["image/png"]].
    Either `path` or `content` is set.
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        content: Optional[bytes] = None,
        content_type: str = "application/octet-stream",
        filename: Optional[str] = None,
    ):
        if path is None and content is None:
            raise ValueError("FileRef needs a path or content")
        self.path = Path(path) if path is not None else None
        self.content = content
        self.content_type = content_type
        self.filename = filename
