from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter

from typeroute.runtime.binding import ControllerProperties


class RouterBase:
    """
    Base for the class decorated with @router. The generated register(root)
    adds one sub-router per controller and calls build() when done.
    """

    prefix: str = ""

    def __init__(self, context: Any = None):
        self.context = context
        self.root = APIRouter()
        self.routers: dict[str, APIRouter] = {}
        self._built = False

    def add_router(self, path: str, name: str) -> APIRouter:
        router = APIRouter(prefix=path.rstrip("/"))
        self.routers[name] = router
        return router

    def get_router(self, name: Optional[str] = None) -> APIRouter:
        if name is None:
            return self.root
        return self.routers[name]

    def build(self) -> APIRouter:
        if not self._built:
            for router in self.routers.values():
                self.root.include_router(router)
            self._built = True
        return self.root


class ControllerBase:
    """Base for classes decorated with @controller."""

    path: Optional[str] = None

    def __init__(self, properties: ControllerProperties):
        self.properties = properties

    @property
    def context(self) -> Any:
        return self.properties.context

    @property
    def request(self) -> Any:
        return self.properties.request
