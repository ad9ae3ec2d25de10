from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

from starlette.responses import Response

from typeroute.runtime.check import EndpointCheck


class EndpointCheckBinding:
    """The generated validator module's checks, shared by every request."""

    def __init__(self, checks: Mapping[str, EndpointCheck]):
        self.checks = dict(checks)
        self.id = uuid.uuid4().hex

    def get(self, key: str) -> Optional[EndpointCheck]:
        return self.checks.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self.checks


class ControllerProperties:
    """
    Per-request state handed to a controller.
    Only the first response set through `respond` is ever sent.
    """

    def __init__(
        self,
        binding: Optional[EndpointCheckBinding],
        context: Any,
        request: Any,
        controller_ref: Optional[str] = None,
    ):
        self.binding = binding
        self.context = context
        self.request = request
        self.controller_ref = controller_ref
        self.response: Optional[Response] = None

    @property
    def responded(self) -> bool:
        return self.response is not None

    def respond(self, response: Response) -> Response:
        if self.response is None:
            self.response = response
        return self.response
