"""Tests for Sentry setup."""

from unittest.mock import patch

import pytest

from pgtxn.core.monitoring import setup_sentry


@pytest.mark.unit
def test_no_dsn_skips_init(monkeypatch):
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    with patch("pgtxn.core.monitoring.sentry_sdk.init") as init:
        assert setup_sentry() is False
    init.assert_not_called()


@pytest.mark.unit
def test_explicit_dsn(monkeypatch):
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    with patch("pgtxn.core.monitoring.sentry_sdk.init") as init:
        assert setup_sentry("https://key@sentry.example.com/1", environment="ci") is True
    kwargs = init.call_args.kwargs
    assert kwargs["dsn"] == "https://key@sentry.example.com/1"
    assert kwargs["environment"] == "ci"
    assert kwargs["release"] == "0.1.0"
    assert kwargs["send_default_pii"] is False


@pytest.mark.unit
def test_dsn_from_environment(monkeypatch):
    monkeypatch.setenv("SENTRY_DSN", "https://env@sentry.example.com/2")
    with patch("pgtxn.core.monitoring.sentry_sdk.init") as init:
        assert setup_sentry() is True
    assert init.call_args.kwargs["dsn"] == "https://env@sentry.example.com/2"
