"""
Unit tests for structlog processors and configuration.
"""

import json
import logging

from inference_gateway import __version__
from inference_gateway.logging_config import (
    DEFAULT_APP_NAME,
    app_context,
    configure_logging,
    mask_credentials,
)


def test_mask_credentials():
    event = {"event": "x", "api_key": "sk-123", "Authorization": "Bearer abc", "password": None, "model": "m"}

    masked = mask_credentials(None, "info", event)

    assert masked["api_key"] == "***"
    assert masked["Authorization"] == "***"
    assert masked["password"] is None
    assert masked["model"] == "m"


def test_app_context_defaults():
    add_app_context = app_context()

    event = add_app_context(None, "info", {})

    assert event["app"] == DEFAULT_APP_NAME
    assert event["version"] == __version__


def test_app_context_does_not_override_event_keys():
    add_app_context = app_context("Gateway (staging)", "9.9.9")

    assert add_app_context(None, "info", {"app": "worker"}) == {"app": "worker", "version": "9.9.9"}
    assert add_app_context(None, "info", {})["app"] == "Gateway (staging)"


def test_configure_logging_sets_levels():
    configure_logging("WARNING", "production")

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configure_logging_tags_events_with_app(capsys):
    configure_logging("INFO", "production", app_name="Gateway (test)", app_version="2.0.0")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    event = json.loads(line)

    assert event["event"] == "Logging configured"
    assert event["app"] == "Gateway (test)"
    assert event["version"] == "2.0.0"
    assert event["output"] == "json"
