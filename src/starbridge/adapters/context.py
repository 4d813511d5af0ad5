# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Per-request response context and the finalization step.

Handlers never write to the wire themselves.  They mutate a
:class:`RequestContext` (status, outbound headers, staged body) and the
adapter turns that context into exactly one Starlette response once the
handler returns.  :func:`finalize` is the only place where the body
encoding is decided.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

from pydantic import TypeAdapter
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response


CONTEXT_SCOPE_KEY: Final[str] = "starbridge.context"
ALREADY_SENT_HEADER: Final[str] = "x-starbridge-already-sent"


class _Unset(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset.UNSET

# Shared marker for "the engine already produced the response"; compare by identity.
RESPONSE_ALREADY_SENT: Final[Response] = Response(status_code=204, headers={ALREADY_SENT_HEADER: "true"})

_JSONABLE: Final[TypeAdapter[Any]] = TypeAdapter(Any)


@dataclass(slots=True, eq=False)
class RequestContext:
    """Mutable response-in-progress for a single request.

    ``body`` is ``UNSET`` until a handler stages something; after that it is
    either a ``str`` (sent as text) or any other value (see :func:`encode_body`).
    ``response`` holds a response that was produced outside the staged state,
    such as a redirect or an engine response returned through ``next()``, and
    wins over the staged body.  ``rendered`` is set once a shim has encoded
    the staged state, so middleware running ``next()`` knows the downstream
    response can be rebuilt from the context.
    """

    request: Request
    status_code: int = 200
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    body: Any = UNSET
    response: Response | None = None
    rendered: bool = False

    @property
    def has_body(self) -> bool:
        return self.body is not UNSET

    def stage(self, body: Any) -> None:
        self.body = body


def context_for(request: Request) -> RequestContext:
    """Return the context bound to *request*'s scope, creating it once."""

    ctx = request.scope.get(CONTEXT_SCOPE_KEY)
    if ctx is None:
        ctx = RequestContext(request=request)
        request.scope[CONTEXT_SCOPE_KEY] = ctx
    return ctx


def flatten_headers(request: Request) -> dict[str, str]:
    """Collapse repeated headers into one comma-joined value per name."""

    flat: dict[str, str] = {}
    for name, value in request.headers.items():
        flat[name] = f"{flat[name]}, {value}" if name in flat else value
    return flat


def augment_request(request: Request, params: dict[str, Any] | None = None) -> Request:
    """Attach ``query``, ``params`` and ``header_map`` to *request*.

    Path parameters default to the ones Starlette's router matched;
    middleware matches its own pattern and passes them explicitly.
    """

    request.query = dict(request.query_params)  # type: ignore[attr-defined]
    request.params = dict(request.path_params if params is None else params)  # type: ignore[attr-defined]
    request.header_map = flatten_headers(request)  # type: ignore[attr-defined]
    return request


def encode_body(body: Any, *, status_code: int = 200, headers: MutableHeaders | None = None) -> Response:
    """Encode a staged body.

    Strings and falsy scalars (nothing, ``None``, ``0``, ``False``) are sent as
    text; everything else, empty containers included, as JSON.
    """

    if body is UNSET or body is None:
        return PlainTextResponse("", status_code=status_code, headers=headers)
    if isinstance(body, str):
        return PlainTextResponse(body, status_code=status_code, headers=headers)
    if isinstance(body, (bool, int, float)) and not body:
        return PlainTextResponse(_JSONABLE.dump_json(body).decode(), status_code=status_code, headers=headers)
    return JSONResponse(_JSONABLE.dump_python(body, mode="json"), status_code=status_code, headers=headers)


def finalize(ctx: RequestContext) -> Response:
    """Turn *ctx* into the response Starlette will send.

    A response already held on the context wins; otherwise the staged state
    is encoded and ``ctx.rendered`` records that it was.
    """

    if ctx.response is not None:
        return ctx.response
    ctx.rendered = True
    return encode_body(ctx.body, status_code=ctx.status_code, headers=ctx.headers)


__all__ = [
    "CONTEXT_SCOPE_KEY",
    "RESPONSE_ALREADY_SENT",
    "UNSET",
    "RequestContext",
    "augment_request",
    "context_for",
    "encode_body",
    "finalize",
    "flatten_headers",
]
