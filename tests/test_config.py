# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from starbridge.config import DEFAULT_BODY_LIMIT, ApplicationOptions, ConfigurationError, HttpsOptions


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "STARBRIDGE_HOST",
        "STARBRIDGE_LOG_LEVEL",
        "STARBRIDGE_BODY_LIMIT",
        "STARBRIDGE_SSL_CERTFILE",
        "STARBRIDGE_SSL_KEYFILE",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_environment() -> None:
    options = ApplicationOptions.from_env()

    assert options.host == "127.0.0.1"
    assert options.log_level == "info"
    assert options.body_limit == DEFAULT_BODY_LIMIT
    assert options.https_options is None
    assert options.cors is None


def test_environment_overrides_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARBRIDGE_HOST", "0.0.0.0")
    monkeypatch.setenv("STARBRIDGE_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("STARBRIDGE_BODY_LIMIT", "2048")

    options = ApplicationOptions.from_env()

    assert options.host == "0.0.0.0"
    assert options.log_level == "warning"
    assert options.body_limit == 2048


def test_explicit_overrides_beat_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARBRIDGE_BODY_LIMIT", "2048")

    options = ApplicationOptions.from_env(body_limit=16, cors={"allow_origins": ["*"]})

    assert options.body_limit == 16
    assert options.cors == {"allow_origins": ["*"]}


def test_tls_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARBRIDGE_SSL_CERTFILE", "/certs/server.pem")
    monkeypatch.setenv("STARBRIDGE_SSL_KEYFILE", "/certs/server.key")

    options = ApplicationOptions.from_env()

    assert options.https_options == HttpsOptions(certfile="/certs/server.pem", keyfile="/certs/server.key")
    assert options.https_options.as_uvicorn_kwargs() == {
        "ssl_certfile": "/certs/server.pem",
        "ssl_keyfile": "/certs/server.key",
        "ssl_keyfile_password": None,
        "ssl_ca_certs": None,
    }


def test_rejects_non_integer_body_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARBRIDGE_BODY_LIMIT", "lots")

    with pytest.raises(ConfigurationError, match="STARBRIDGE_BODY_LIMIT"):
        ApplicationOptions.from_env()


def test_rejects_negative_body_limit() -> None:
    with pytest.raises(ConfigurationError):
        ApplicationOptions.from_env(body_limit=-1)
