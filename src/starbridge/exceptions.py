# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""HTTP errors raised from application endpoints."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class HttpException(Exception):
    """An error that maps directly onto an HTTP response.

    The application catches these around every endpoint and replies with
    ``{"statusCode", "message", "error"}`` instead of a 500.
    """

    def __init__(self, status_code: int, message: Any = None, *, error: str | None = None) -> None:
        self.status_code = status_code
        self.error = error or _phrase(status_code)
        self.message = message if message is not None else self.error
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "message": self.message, "error": self.error}


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


class BadRequestException(HttpException):
    def __init__(self, message: Any = None) -> None:
        super().__init__(400, message)


class NotFoundException(HttpException):
    def __init__(self, message: Any = None) -> None:
        super().__init__(404, message)


__all__ = ["BadRequestException", "HttpException", "NotFoundException"]
