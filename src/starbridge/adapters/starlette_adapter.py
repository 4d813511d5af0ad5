# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Run the application layer on Starlette and uvicorn.

:class:`StarletteAdapter` owns one :class:`~starlette.applications.Starlette`
instance (the dispatch engine) and one :class:`uvicorn.Server` (the native
server handle).  Registrations made through the adapter contract become
Starlette routes, middleware and exception hooks; every framework handler is
wrapped by a shim from :mod:`starbridge.adapters.shims` so that it sees the
request shape and the ``(request, ctx, next)`` convention it expects.

All registrations must happen before :meth:`StarletteAdapter.listen`.
Starlette refuses new middleware once it has served a request; other
mutations after that point are not guarded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Collection
from functools import partial
from typing import Any, Final

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.body_limit import RequestBodyLimitMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles
from uvicorn import Config, Server

from ..config import DEFAULT_BODY_LIMIT, ApplicationOptions
from ..utils import get_logger
from .base import (
    AbstractHttpAdapter,
    ErrorHandler,
    HandlerResolutionError,
    NotFoundHandler,
    RegistrationFunction,
    RequestHandler,
    RequestMethod,
)
from .context import RESPONSE_ALREADY_SENT, RequestContext
from .shims import (
    HandlerMiddleware,
    PathPattern,
    error_hook,
    method_mismatch_hook,
    not_found_app,
    route_endpoint,
    to_engine_path,
)


NOT_IMPLEMENTED_MESSAGE: Final[str] = "Method not implemented"

# Verbs with a dedicated middleware registration; anything else goes through ``use``.
_MIDDLEWARE_VERBS: Final[dict[RequestMethod, str]] = {
    RequestMethod.DELETE: "DELETE",
    RequestMethod.GET: "GET",
    RequestMethod.OPTIONS: "OPTIONS",
    RequestMethod.PATCH: "PATCH",
    RequestMethod.POST: "POST",
    RequestMethod.PUT: "PUT",
}


class StarletteAdapter(AbstractHttpAdapter[Server, Request, RequestContext]):
    """HTTP adapter backed by Starlette routing and a uvicorn server."""

    TYPE: Final[str] = "starlette"
    STARTUP_POLL_INTERVAL: float = 0.01

    instance: Starlette

    def __init__(self, instance: Starlette | None = None, *, body_limit: int = DEFAULT_BODY_LIMIT) -> None:
        super().__init__(instance if instance is not None else Starlette())
        self._body_limit = body_limit
        self._serve_task: asyncio.Task[None] | None = None
        self._logger = get_logger("starbridge.adapter")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init_http_server(self, options: ApplicationOptions) -> None:
        tls = options.https_options.as_uvicorn_kwargs() if options.https_options is not None else {}
        config = Config(
            app=self.instance,
            host=options.host,
            log_level=options.log_level,
            **options.server_options,
            **tls,
        )
        self._body_limit = options.body_limit
        self.set_http_server(Server(config))
        self._logger.debug("prepared %s server handle", "https" if tls else "http")

    def register_parser_middleware(self, prefix: str | None = None, raw_body: bool = False) -> None:
        self._add_engine_middleware(RequestBodyLimitMiddleware, max_body_size=self._body_limit)

    async def listen(self, port: int | str, *args: Any, host: str | None = None, **kwargs: Any) -> Server:
        """Start accepting connections and return the server handle.

        Returns once uvicorn reports that it is serving; the server keeps
        running in a background task until :meth:`close`.
        """
        if self._serve_task is not None:
            raise RuntimeError("server is already listening")
        server = self._fresh_server()

        server.config.port = int(port)
        if host is not None:
            server.config.host = host

        self._serve_task = asyncio.create_task(_serve(server))
        while not server.started:
            if self._serve_task.done():
                task, self._serve_task = self._serve_task, None
                error = task.exception()
                raise RuntimeError(f"server failed to start on port {port}") from error
            await asyncio.sleep(self.STARTUP_POLL_INTERVAL)

        scheme = "https" if server.config.is_ssl else "http"
        self._logger.info("listening on %s://%s:%s", scheme, server.config.host, self.get_listening_port())
        return server

    async def close(self) -> None:
        """Stop the server and wait until open connections are drained.

        Closing a server that is not running is a no-op.
        """
        task, self._serve_task = self._serve_task, None
        if task is None or self.http_server is None:
            self._logger.debug("close() ignored; server is not running")
            return
        self.http_server.should_exit = True
        await task
        self._logger.info("server closed")

    def _fresh_server(self) -> Server:
        """Return a server handle that has not served yet."""
        if self.http_server is None:
            self.init_http_server(ApplicationOptions())
        server = self.http_server
        if server is None:
            raise RuntimeError("init_http_server() did not provide a server handle")
        if server.started or server.should_exit:
            server = Server(server.config)
            self.set_http_server(server)
        return server

    def get_listening_port(self) -> int | None:
        """Port the running server is bound to (useful after ``listen(0)``)."""
        server = self.http_server
        if server is None or self._serve_task is None or not server.started:
            return None
        for listener in server.servers:
            for sock in listener.sockets:
                return sock.getsockname()[1]
        return server.config.port

    def get_type(self) -> str:
        return self.TYPE

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def get(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        self._register("GET", path_or_handler, handler)

    def head(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        # Starlette answers HEAD from GET routes, so HEAD shares the GET registration.
        self._register("GET", path_or_handler, handler)

    def post(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        self._register("POST", path_or_handler, handler)

    def put(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        self._register("PUT", path_or_handler, handler)

    def patch(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        self._register("PATCH", path_or_handler, handler)

    def delete(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        self._register("DELETE", path_or_handler, handler)

    def options(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        self._register("OPTIONS", path_or_handler, handler)

    def use(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> None:
        path, resolved = resolve_path_and_handler(path_or_handler, handler)
        self._add_handler_middleware(resolved, path, methods=None)

    def all(self, *args: Any) -> None:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    def search(self, *args: Any) -> None:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    def create_middleware_factory(self, request_method: RequestMethod) -> RegistrationFunction:
        verb = _MIDDLEWARE_VERBS.get(request_method)
        if verb is None:
            return self.use
        return partial(self._use_for_verb, verb)

    def apply_version_filter(self, handler: Callable[..., Any], version: Any, versioning_options: Any) -> Any:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    # ------------------------------------------------------------------
    # Response primitives
    # ------------------------------------------------------------------

    def reply(self, ctx: RequestContext, body: Any, status_code: int | None = None) -> None:
        if status_code:
            ctx.status_code = status_code
        ctx.stage(body)

    def status(self, ctx: RequestContext, status_code: int) -> None:
        ctx.status_code = status_code

    def end(self, ctx: RequestContext | None = None, message: str | None = None) -> Response:
        return RESPONSE_ALREADY_SENT

    def render(self, *args: Any) -> None:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    def redirect(self, ctx: RequestContext, status_code: int, url: str) -> None:
        ctx.response = RedirectResponse(url, status_code=status_code, headers=ctx.headers)

    def set_header(self, ctx: RequestContext, name: str, value: str) -> None:
        ctx.headers[name] = value

    def append_header(self, ctx: RequestContext, name: str, value: str) -> None:
        ctx.headers.append(name, value)

    def get_header(self, ctx: RequestContext, name: str) -> str | None:
        return ctx.request.headers.get(name)

    def is_headers_sent(self, ctx: RequestContext) -> bool:
        # Header flush state is not tracked; callers must assume it is too late.
        return True

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def set_error_handler(self, handler: ErrorHandler, prefix: str | None = None) -> None:
        self.instance.add_exception_handler(Exception, error_hook(handler))

    def set_not_found_handler(self, handler: NotFoundHandler, prefix: str | None = None) -> None:
        self.instance.router.default = not_found_app(handler)
        self.instance.add_exception_handler(405, method_mismatch_hook(handler))

    def enable_cors(self, options: dict[str, Any] | None = None, prefix: str | None = None) -> None:
        self._add_engine_middleware(CORSMiddleware, **(options or {}))

    def use_static_assets(self, path: str, options: dict[str, Any]) -> None:
        self.instance.router.routes.append(Mount(path, app=StaticFiles(**options)))
        self._logger.debug("mounted static assets at %r", path)

    def set_view_engine(self, engine: Any = None) -> None:
        raise NotImplementedError(NOT_IMPLEMENTED_MESSAGE)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_request_hostname(self, ctx: RequestContext) -> str:
        return ctx.request.headers.get("host") or "localhost"

    def get_request_method(self, request: Request) -> str:
        return request.method

    def get_request_url(self, request: Request) -> str:
        return str(request.url)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _register(self, verb: str, path_or_handler: str | RequestHandler, handler: RequestHandler | None) -> None:
        path, resolved = resolve_path_and_handler(path_or_handler, handler)
        if not path:
            self._add_handler_middleware(resolved, path, methods=(verb,))
            return

        engine_path = to_engine_path(path)
        route = Route(engine_path, route_endpoint(resolved, logger=self._logger), methods=[verb])
        self.instance.router.routes.append(route)
        self._logger.debug("registered route %s %s", verb, engine_path)

    def _use_for_verb(
        self, verb: str, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None
    ) -> None:
        path, resolved = resolve_path_and_handler(path_or_handler, handler)
        self._add_handler_middleware(resolved, path, methods=(verb,))

    def _add_handler_middleware(self, handler: RequestHandler, path: str, *, methods: Collection[str] | None) -> None:
        if methods is not None and "GET" in methods:
            methods = (*methods, "HEAD")
        self._add_engine_middleware(
            HandlerMiddleware,
            handler=handler,
            pattern=PathPattern.compile(path),
            methods=methods,
            logger=self._logger,
        )
        self._logger.debug("registered middleware %s %r", "/".join(methods) if methods else "*", path)

    def _add_engine_middleware(self, middleware_class: Any, **options: Any) -> None:
        # Starlette's own add_middleware prepends; registration order must be kept.
        if self.instance.middleware_stack is not None:
            raise RuntimeError("Cannot add middleware after an application has started")
        self.instance.user_middleware.append(Middleware(middleware_class, **options))


def resolve_path_and_handler(
    path_or_handler: str | RequestHandler, handler: RequestHandler | None = None
) -> tuple[str, RequestHandler]:
    """Normalize ``(path, handler)`` and ``(handler)`` registrations.

    A bare handler registers on the empty path, which means "every path".
    """
    if isinstance(path_or_handler, str):
        if handler is None:
            raise HandlerResolutionError(f"Could not resolve handler for path {path_or_handler!r}")
        return path_or_handler, handler
    if not callable(path_or_handler):
        raise HandlerResolutionError(f"Could not resolve handler from {path_or_handler!r}")
    return "", path_or_handler


async def _serve(server: Server) -> None:
    try:
        await server.serve()
    except SystemExit as exc:
        # uvicorn exits the process when it cannot bind; keep that inside the task.
        raise RuntimeError(f"uvicorn exited with status {exc.code}") from exc


__all__ = ["StarletteAdapter", "resolve_path_and_handler"]
