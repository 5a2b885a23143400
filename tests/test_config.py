"""Tests for settings resolution from the environment and the CLI."""
from __future__ import annotations

from pathlib import Path

import pytest

from publicai_proxy import cli
from publicai_proxy.config import DEFAULT_MODEL, DEFAULT_PORT, DEFAULT_UPSTREAM_URL, ProxySettings

ENV_KEYS = ("HOST", "PORT", "API_KEY", "DEFAULT_MODEL", "UPSTREAM_URL", "SANITIZE_SYSTEM_ROLE", "DEBUG_SSE_PATH")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    settings = ProxySettings.from_env()
    assert settings.port == DEFAULT_PORT == 3000
    assert settings.api_key == "1"
    assert settings.default_model == DEFAULT_MODEL == "publicai-gpt-4"
    assert settings.upstream_url == DEFAULT_UPSTREAM_URL
    assert settings.sanitize_system_role is False
    assert settings.debug_sse_enabled is False
    assert settings.resolved_debug_path() is None


def test_from_env(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("API_KEY", "secret")
    monkeypatch.setenv("DEFAULT_MODEL", "publicai-other")
    monkeypatch.setenv("SANITIZE_SYSTEM_ROLE", "yes")
    monkeypatch.setenv("DEBUG_SSE_PATH", "~/sse.log")

    settings = ProxySettings.from_env()

    assert settings.port == 8080
    assert settings.api_key == "secret"
    assert settings.default_model == "publicai-other"
    assert settings.sanitize_system_role is True
    assert settings.debug_sse_enabled is True
    assert settings.resolved_debug_path() == Path("~/sse.log").expanduser()


def test_invalid_port(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ValueError, match="PORT"):
        ProxySettings.from_env()


def test_cli_overrides_env(monkeypatch):
    monkeypatch.setenv("API_KEY", "from-env")
    monkeypatch.setenv("PORT", "9000")

    args = cli.parse_args(["--api-key", "from-cli", "--default-model", "m", "--sanitize-system-role"])
    settings = cli._build_settings(args)

    assert settings.api_key == "from-cli"
    assert settings.port == 9000
    assert settings.default_model == "m"
    assert settings.sanitize_system_role is True
    assert settings.debug_sse_enabled is False


def test_cli_debug_flag():
    settings = cli._build_settings(cli.parse_args(["--debug"]))
    assert settings.debug_sse_enabled is True
    assert settings.debug_sse_path == cli.DEFAULT_DEBUG_PATH

    settings = cli._build_settings(cli.parse_args(["--debug", "/tmp/trace.log"]))
    assert settings.debug_sse_path == "/tmp/trace.log"
