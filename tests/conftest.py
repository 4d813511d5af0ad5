# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

from __future__ import annotations

from typing import Any

import httpx
import pytest

from starbridge.adapters import StarletteAdapter


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def adapter() -> StarletteAdapter:
    return StarletteAdapter()


@pytest.fixture
def client_for():
    """Build an in-process client for an ASGI app.

    Starlette re-raises handler errors after the error hook has answered, so
    the transport is told not to surface them.
    """

    def factory(app: Any) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        return httpx.AsyncClient(transport=transport, base_url="http://testserver")

    return factory
