from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class RouteSummary(BaseModel):
    method: HttpMethod
    path: str
    handler: str
    controller: str
    operation_id: str
    file_path: str = ""
    line: Optional[int] = None
