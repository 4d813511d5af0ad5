# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""HTTP adapters for starbridge applications.

:class:`AbstractHttpAdapter` is the contract the application layer relies on;
:class:`StarletteAdapter` fulfils it on top of Starlette and uvicorn.
"""

from __future__ import annotations

from .base import AbstractHttpAdapter, HandlerResolutionError, RequestMethod
from .context import RESPONSE_ALREADY_SENT, UNSET, RequestContext
from .starlette_adapter import StarletteAdapter


__all__ = [
    "AbstractHttpAdapter",
    "HandlerResolutionError",
    "RESPONSE_ALREADY_SENT",
    "RequestContext",
    "RequestMethod",
    "StarletteAdapter",
    "UNSET",
]
