# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Echo controller answering every verb on ``/:id``.

Each endpoint returns what it saw: path params, query, headers and, for the
verbs that carry one, the JSON body.  ``GET`` also reports the client IP and
leaves the path params untouched; every other verb coerces ``id`` to ``int``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from starbridge import Controller, RouteCall, delete, get, head, options, patch, post, put


class ParamsSchema(BaseModel):
    id: int


class QuerySchema(BaseModel):
    filter: str | None = None


class BodySchema(BaseModel):
    name: str | None = None


class ResponseSchema(BaseModel):
    params: dict[str, Any]
    query: dict[str, Any]
    headers: dict[str, Any]
    body: dict[str, Any] | None = None
    ip: str | None = None


def echo(call: RouteCall, *, with_body: bool = False, with_ip: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "params": _as_dict(call.params),
        "query": _as_dict(call.query),
        "headers": call.headers,
    }
    if with_body:
        payload["body"] = _as_dict(call.body)
    if with_ip:
        payload["ip"] = call.ip
    return payload


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    return dict(value or {})


class CatsController(Controller):
    @get("/:id", query=QuerySchema, response=ResponseSchema)
    async def find_one(self, call: RouteCall) -> dict[str, Any]:
        return echo(call, with_ip=True)

    @options("/:id", params=ParamsSchema, query=QuerySchema, response=ResponseSchema)
    async def preflight(self, call: RouteCall) -> dict[str, Any]:
        return echo(call)

    @head("/:id", params=ParamsSchema, query=QuerySchema, response=ResponseSchema)
    async def head_one(self, call: RouteCall) -> dict[str, Any]:
        return echo(call)

    @post("/:id", params=ParamsSchema, query=QuerySchema, body=BodySchema, response=ResponseSchema)
    async def create(self, call: RouteCall) -> dict[str, Any]:
        return echo(call, with_body=True)

    @patch("/:id", params=ParamsSchema, query=QuerySchema, body=BodySchema, response=ResponseSchema)
    async def update(self, call: RouteCall) -> dict[str, Any]:
        return echo(call, with_body=True)

    @put("/:id", params=ParamsSchema, query=QuerySchema, body=BodySchema, response=ResponseSchema)
    async def replace(self, call: RouteCall) -> dict[str, Any]:
        return echo(call, with_body=True)

    @delete("/:id", params=ParamsSchema, query=QuerySchema, response=ResponseSchema)
    async def remove(self, call: RouteCall) -> dict[str, Any]:
        return echo(call)
