# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Application and server options.

Options are plain dataclasses so they can be built in code; :meth:`from_env`
layers ``STARBRIDGE_*`` environment variables underneath explicit values.
The listening port is always chosen in code.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import os
from typing import Any, Final


ENV_HOST: Final[str] = "STARBRIDGE_HOST"
ENV_LOG_LEVEL: Final[str] = "STARBRIDGE_LOG_LEVEL"
ENV_BODY_LIMIT: Final[str] = "STARBRIDGE_BODY_LIMIT"
ENV_SSL_CERTFILE: Final[str] = "STARBRIDGE_SSL_CERTFILE"
ENV_SSL_KEYFILE: Final[str] = "STARBRIDGE_SSL_KEYFILE"

DEFAULT_BODY_LIMIT: Final[int] = 100 * 1024


class ConfigurationError(ValueError):
    """Raised when options or environment overrides are malformed."""


@dataclass(slots=True, frozen=True)
class HttpsOptions:
    """TLS material handed to the server runtime."""

    certfile: str
    keyfile: str | None = None
    password: str | None = None
    ca_certs: str | None = None

    def as_uvicorn_kwargs(self) -> dict[str, Any]:
        return {
            "ssl_certfile": self.certfile,
            "ssl_keyfile": self.keyfile,
            "ssl_keyfile_password": self.password,
            "ssl_ca_certs": self.ca_certs,
        }


@dataclass(slots=True)
class ApplicationOptions:
    """Options consumed by :class:`~starbridge.app.Application` and adapters."""

    https_options: HttpsOptions | None = None
    host: str = "127.0.0.1"
    log_level: str = "info"
    body_limit: int = DEFAULT_BODY_LIMIT
    cors: dict[str, Any] | None = None
    server_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> ApplicationOptions:
        """Build options from ``STARBRIDGE_*`` variables plus *overrides*."""

        options = cls()
        env: dict[str, Any] = {}

        if host := os.getenv(ENV_HOST):
            env["host"] = host
        if level := os.getenv(ENV_LOG_LEVEL):
            env["log_level"] = level.lower()
        if limit := os.getenv(ENV_BODY_LIMIT):
            try:
                env["body_limit"] = int(limit)
            except ValueError as exc:
                raise ConfigurationError(f"{ENV_BODY_LIMIT} must be an integer, got {limit!r}") from exc
        if certfile := os.getenv(ENV_SSL_CERTFILE):
            env["https_options"] = HttpsOptions(certfile=certfile, keyfile=os.getenv(ENV_SSL_KEYFILE))

        options = replace(options, **{**env, **overrides})
        if options.body_limit < 0:
            raise ConfigurationError("body_limit must be non-negative")
        return options


__all__ = ["ApplicationOptions", "ConfigurationError", "HttpsOptions", "DEFAULT_BODY_LIMIT"]
