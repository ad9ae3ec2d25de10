from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional

from typeroute.errors import HttpError, ParameterValidationError
from typeroute.runtime.coerce import settle

ENDPOINT_ATTR = "__typeroute_endpoint__"

ErrorHandler = Callable[[Exception, Any], Any]


@dataclass(frozen=True)
class EndpointConfig:
    verb: str
    path: Optional[str] = None
    error_handler: Optional[ErrorHandler] = None


def _normalize(path: Optional[str]) -> str:
    if not path:
        return ""
    return "/" + path.strip("/")


def router(prefix: str = "") -> Callable[[type], type]:
    def decorate(cls: type) -> type:
        cls.prefix = _normalize(prefix)
        return cls

    return decorate


def controller(path: Optional[str] = None) -> Callable[[type], type]:
    def decorate(cls: type) -> type:
        cls.path = _normalize(path) if path else None
        return cls

    return decorate


def endpoint_config(func: Callable) -> Optional[EndpointConfig]:
    return getattr(func, ENDPOINT_ATTR, None)


def _check_args(instance: Any, method: str, args: list) -> list:
    properties = getattr(instance, "properties", None)
    binding = getattr(properties, "binding", None)
    if binding is None:
        return args
    ref = getattr(properties, "controller_ref", None) or type(instance).__name__
    check = binding.get(f"{ref}.{method}")
    if check is None:
        return args
    obj = check.args_to_schema(args)
    result = check.validate(obj)
    if not result.valid:
        first = result.errors[0]
        raise ParameterValidationError(first["path"], first["message"])
    # validation may have coerced values
    return check.schema_to_args(obj)


def _trim(args: list) -> list:
    """Drop trailing unset arguments so parameter defaults apply."""
    while args and args[-1] is None:
        args.pop()
    return args


def _mapped_error(handler: ErrorHandler, err: Exception, properties: Any) -> Optional[BaseException]:
    result = handler(err, properties)
    if result is None:
        return None
    if isinstance(result, BaseException):
        return result
    if isinstance(result, int) and not isinstance(result, bool):
        return HttpError(result)
    return HttpError(500, str(result))


def _verb(verb: str) -> Callable:
    def factory(path: Any = None, *, error_handler: Optional[ErrorHandler] = None) -> Callable:
        # bare @get
        if callable(path):
            return factory()(path)

        def decorate(func: Callable) -> Callable:
            @functools.wraps(func)
            async def wrapper(self: Any, *args: Any) -> Any:
                try:
                    checked = _trim(_check_args(self, func.__name__, list(args)))
                    return await settle(func(self, *checked))
                except ParameterValidationError:
                    raise
                except Exception as err:
                    if error_handler is None:
                        raise
                    mapped = _mapped_error(error_handler, err, getattr(self, "properties", None))
                    if mapped is None:
                        raise
                    raise mapped from err

            setattr(wrapper, ENDPOINT_ATTR, EndpointConfig(verb, path, error_handler))
            return wrapper

        return decorate

    return factory


get = _verb("get")
post = _verb("post")
put = _verb("put")
patch = _verb("patch")
delete = _verb("delete")
all_ = _verb("all")

all = all_  # noqa: A001
