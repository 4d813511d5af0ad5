# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""The HTTP adapter contract the application layer programs against.

:class:`~starbridge.app.Application` registers routes, middleware and hooks,
writes statuses, headers and bodies, and drives the server lifecycle through
an :class:`AbstractHttpAdapter`.  Concrete adapters translate those calls into
whatever their underlying toolkit understands.

Handlers follow a three-argument convention::

    async def handler(request, ctx, next) -> None: ...

``request`` is the (augmented) inbound request, ``ctx`` the adapter's
per-request response context, and ``next`` a zero-argument coroutine
function that continues the middleware chain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar


if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config import ApplicationOptions


ServerT = TypeVar("ServerT")
RequestT = TypeVar("RequestT")
ContextT = TypeVar("ContextT")

Next = Callable[[], Awaitable[None]]
RequestHandler = Callable[[Any, Any, Next], Any]
ErrorHandler = Callable[[BaseException, Any, Any], Any]
NotFoundHandler = Callable[[Any, Any], Any]
RegistrationFunction = Callable[..., None]


class RequestMethod(str, Enum):
    """HTTP verbs known to the application layer."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    ALL = "ALL"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"
    SEARCH = "SEARCH"


class HandlerResolutionError(TypeError):
    """Raised when a registration names a path but supplies no handler."""


class AbstractHttpAdapter(ABC, Generic[ServerT, RequestT, ContextT]):
    """Operations an HTTP transport must provide to host an application.

    ``ServerT`` is the native server handle, ``RequestT`` the request object
    handed to handlers and ``ContextT`` the per-request response context.
    """

    def __init__(self, instance: Any) -> None:
        self.instance = instance
        self.http_server: ServerT | None = None

    def get_instance(self) -> Any:
        """Return the underlying dispatch engine."""
        return self.instance

    def get_http_server(self) -> ServerT | None:
        return self.http_server

    def set_http_server(self, server: ServerT) -> None:
        self.http_server = server

    async def init(self) -> None:
        """Hook run by the application before any registration."""

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @abstractmethod
    def get(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def post(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def put(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def patch(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def delete(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def head(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def options(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def use(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None: ...

    @abstractmethod
    def all(self, *args: Any) -> None: ...

    @abstractmethod
    def search(self, *args: Any) -> None: ...

    @abstractmethod
    def create_middleware_factory(self, request_method: RequestMethod) -> RegistrationFunction:
        """Return a registration callable for middleware scoped to *request_method*."""

    @abstractmethod
    def apply_version_filter(self, handler: Callable[..., Any], version: Any, versioning_options: Any) -> Any: ...

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def init_http_server(self, options: ApplicationOptions) -> None:
        """Create the native server handle without accepting connections."""

    @abstractmethod
    def register_parser_middleware(self, prefix: str | None = None, raw_body: bool = False) -> None: ...

    @abstractmethod
    async def listen(self, port: int, *args: Any, **kwargs: Any) -> ServerT: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    def get_type(self) -> str: ...

    # ------------------------------------------------------------------
    # Response primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def reply(self, ctx: ContextT, body: Any, status_code: int | None = None) -> None: ...

    @abstractmethod
    def status(self, ctx: ContextT, status_code: int) -> None: ...

    @abstractmethod
    def end(self, ctx: ContextT | None = None, message: str | None = None) -> Any: ...

    @abstractmethod
    def render(self, *args: Any) -> None: ...

    @abstractmethod
    def redirect(self, ctx: ContextT, status_code: int, url: str) -> None: ...

    @abstractmethod
    def set_header(self, ctx: ContextT, name: str, value: str) -> None: ...

    @abstractmethod
    def append_header(self, ctx: ContextT, name: str, value: str) -> None: ...

    @abstractmethod
    def get_header(self, ctx: ContextT, name: str) -> str | None: ...

    @abstractmethod
    def is_headers_sent(self, ctx: ContextT) -> bool: ...

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def set_error_handler(self, handler: ErrorHandler, prefix: str | None = None) -> None: ...

    @abstractmethod
    def set_not_found_handler(self, handler: NotFoundHandler, prefix: str | None = None) -> None: ...

    @abstractmethod
    def enable_cors(self, options: dict[str, Any] | None = None, prefix: str | None = None) -> None: ...

    @abstractmethod
    def use_static_assets(self, path: str, options: dict[str, Any]) -> None: ...

    @abstractmethod
    def set_view_engine(self, engine: Any = None) -> None: ...

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @abstractmethod
    def get_request_hostname(self, ctx: ContextT) -> str: ...

    @abstractmethod
    def get_request_method(self, request: RequestT) -> str: ...

    @abstractmethod
    def get_request_url(self, request: RequestT) -> str: ...


__all__ = [
    "AbstractHttpAdapter",
    "ErrorHandler",
    "HandlerResolutionError",
    "Next",
    "NotFoundHandler",
    "RegistrationFunction",
    "RequestHandler",
    "RequestMethod",
]
