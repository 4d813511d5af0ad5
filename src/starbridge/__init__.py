# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Starbridge framework primitives."""

from __future__ import annotations

from .adapters import AbstractHttpAdapter, RequestContext, RequestMethod, StarletteAdapter
from .app import (
    Application,
    Controller,
    RouteCall,
    StarbridgeFactory,
    delete,
    get,
    head,
    options,
    patch,
    post,
    put,
    route,
)
from .config import ApplicationOptions, ConfigurationError, HttpsOptions
from .exceptions import BadRequestException, HttpException, NotFoundException


__all__ = [
    "AbstractHttpAdapter",
    "Application",
    "ApplicationOptions",
    "BadRequestException",
    "ConfigurationError",
    "Controller",
    "HttpException",
    "HttpsOptions",
    "NotFoundException",
    "RequestContext",
    "RequestMethod",
    "RouteCall",
    "StarbridgeFactory",
    "StarletteAdapter",
    "delete",
    "get",
    "head",
    "options",
    "patch",
    "post",
    "put",
    "route",
]
