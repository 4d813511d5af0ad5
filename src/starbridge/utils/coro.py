# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Helpers for calling handlers that may or may not be coroutines.

Framework handlers registered through an adapter can be plain functions,
``async def`` functions, or already-created coroutines.  These helpers let
the adapter await all of them the same way.
"""

from __future__ import annotations

import inspect
from typing import Any


async def noop_coroutine(*_args: Any, **_kwargs: Any) -> None:
    """Coroutine that accepts anything and does nothing."""


async def maybe_await(value: Any) -> Any:
    """Resolve *value*, calling it first when it is a callable."""

    if callable(value):
        value = value()
    if inspect.isawaitable(value):
        return await value
    return value


async def maybe_await_with_args(value: Any, *args: Any, **kwargs: Any) -> Any:
    """Like :func:`maybe_await` but forwards arguments to callables.

    Arguments are ignored when *value* is not callable.
    """

    if callable(value):
        value = value(*args, **kwargs)
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = ["maybe_await", "maybe_await_with_args", "noop_coroutine"]
