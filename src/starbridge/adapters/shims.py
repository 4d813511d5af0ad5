# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Wrappers that run framework handlers inside Starlette.

Starlette speaks ``endpoint(request) -> Response`` for routes,
``dispatch(request, call_next) -> Response`` for middleware,
``handler(request, exc) -> Response`` for exception hooks and raw ASGI for
the router's fallback.  Framework handlers speak ``handler(request, ctx,
next)`` and never return a response.  Every shim here does the same three
things: augment the request, invoke the handler, finalize the context.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass, field
from functools import wraps
import logging
import re
import time
from typing import TYPE_CHECKING, Any

from starlette.convertors import Convertor
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import compile_path
from starlette.websockets import WebSocketClose

from ..utils import maybe_await_with_args, noop_coroutine
from .context import augment_request, context_for, finalize


if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

    from .base import ErrorHandler, NotFoundHandler, RequestHandler


_PARAM_SEGMENT = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
WILDCARD_PARAM = "wildcard"


def to_engine_path(path: str) -> str:
    """Translate ``/cats/:id`` style paths into Starlette's ``/cats/{id}``.

    A trailing ``*`` becomes a ``path`` convertor that swallows the rest of
    the URL.  The empty path stays empty (it means "every path").
    """

    if not path:
        return ""
    if not path.startswith("/"):
        path = f"/{path}"
    translated = _PARAM_SEGMENT.sub(r"{\1}", path)
    if translated.endswith("*"):
        translated = f"{translated[:-1]}{{{WILDCARD_PARAM}:path}}"
    return translated


@dataclass(frozen=True, slots=True)
class PathPattern:
    """Path filter for handler middleware."""

    path: str
    regex: re.Pattern[str] | None = None
    convertors: dict[str, Convertor[Any]] = field(default_factory=dict)

    @classmethod
    def compile(cls, path: str) -> PathPattern:
        engine_path = to_engine_path(path)
        if not engine_path:
            return cls(path="")
        regex, _, convertors = compile_path(engine_path)
        return cls(path=path, regex=regex, convertors=convertors)

    def match(self, request_path: str) -> dict[str, Any] | None:
        """Return matched path params, or ``None`` when the path is foreign."""
        if self.regex is None:
            return {}
        matched = self.regex.match(request_path)
        if matched is None:
            return None
        return {name: self.convertors[name].convert(value) for name, value in matched.groupdict().items()}


async def invoke(
    handler: Callable[..., Any],
    *args: Any,
    logger: logging.Logger | None = None,
    label: str = "",
) -> None:
    """Call a sync or async framework handler and wait for it."""

    if logger is None or not logger.isEnabledFor(logging.DEBUG):
        await maybe_await_with_args(handler, *args)
        return

    started = time.perf_counter()
    try:
        await maybe_await_with_args(handler, *args)
    finally:
        logger.debug("handled %s", label, extra={"duration_ms": (time.perf_counter() - started) * 1000})


def route_endpoint(
    handler: RequestHandler, *, logger: logging.Logger | None = None
) -> Callable[[Request], Awaitable[Response]]:
    """Wrap *handler* as a Starlette request/response endpoint.

    Routes terminate the chain, so ``next`` does nothing here.
    """

    @wraps(handler)
    async def endpoint(request: Request) -> Response:
        ctx = context_for(request)
        label = f"{request.method} {request.url.path}"
        await invoke(handler, augment_request(request), ctx, noop_coroutine, logger=logger, label=label)
        return finalize(ctx)

    return endpoint


class HandlerMiddleware(BaseHTTPMiddleware):
    """Run a framework handler as Starlette middleware.

    The handler only sees requests whose method is in ``methods`` (``None``
    means any method) and whose path matches ``pattern``.  Calling ``next``
    runs the rest of the chain.  When a downstream shim encoded the staged
    state, the context is encoded again after the handler returns, so status,
    headers and body changed after ``next`` reach the client.  Any other
    downstream response (a redirect, Starlette's own 404 or a static file)
    is kept as is.
    """

    def __init__(
        self,
        app: ASGIApp,
        handler: RequestHandler,
        *,
        pattern: PathPattern,
        methods: Collection[str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(app)
        self.handler = handler
        self.pattern = pattern
        self.methods = frozenset(methods) if methods is not None else None
        self.logger = logger

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.methods is not None and request.method not in self.methods:
            return await call_next(request)
        params = self.pattern.match(request.scope["path"])
        if params is None:
            return await call_next(request)

        ctx = context_for(request)

        async def next_() -> None:
            ctx.rendered = False
            downstream = await call_next(request)
            if not ctx.rendered:
                ctx.response = downstream

        label = f"middleware {self.pattern.path or '*'} for {request.method} {request.url.path}"
        await invoke(self.handler, augment_request(request, params), ctx, next_, logger=self.logger, label=label)
        return finalize(ctx)


def error_hook(handler: ErrorHandler) -> Callable[[Request, Exception], Awaitable[Response]]:
    """Adapt *handler* to Starlette's ``(request, exc) -> Response`` hook."""

    async def on_error(request: Request, exc: Exception) -> Response:
        ctx = context_for(request)
        # Whatever a shim produced before the failure is not the answer anymore.
        ctx.response = None
        await maybe_await_with_args(handler, exc, request, ctx)
        return finalize(ctx)

    return on_error


def not_found_app(handler: NotFoundHandler) -> Callable[[Scope, Receive, Send], Awaitable[None]]:
    """Adapt *handler* to an ASGI app usable as the router's fallback."""

    async def on_not_found(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await WebSocketClose()(scope, receive, send)
            return

        response = await _run_not_found(handler, Request(scope, receive))
        await response(scope, receive, send)

    return on_not_found


def method_mismatch_hook(handler: NotFoundHandler) -> Callable[[Request, Exception], Awaitable[Response]]:
    """Adapt *handler* to Starlette's 405 hook.

    A path registered under other verbs only is treated as unmatched.
    """

    async def on_method_mismatch(request: Request, exc: Exception) -> Response:
        return await _run_not_found(handler, request)

    return on_method_mismatch


async def _run_not_found(handler: NotFoundHandler, request: Request) -> Response:
    ctx = context_for(request)
    await maybe_await_with_args(handler, augment_request(request, {}), ctx)
    return finalize(ctx)


__all__ = [
    "HandlerMiddleware",
    "PathPattern",
    "error_hook",
    "invoke",
    "method_mismatch_hook",
    "not_found_app",
    "route_endpoint",
    "to_engine_path",
]
