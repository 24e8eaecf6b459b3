"""Shared pytest fixtures for omnivore-sync tests."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

from omnivore_sync.config import Config

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Omnivore account",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Omnivore account"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config():
    """Create a Config instance for testing (no retries, fast failure)."""
    return Config(
        api_key="test-key",
        endpoint="https://omnivore.example.com/api/graphql",
        page_size=2,
        timeout=5.0,
        max_retries=0,
    )


@pytest.fixture
def graphql_response():
    """Factory fixture for creating requests.Response mocks."""

    def _create_response(payload=None, status_code=200, headers=None):
        response = Mock()
        response.status_code = status_code
        response.headers = headers or {}
        if isinstance(payload, Exception):
            response.json.side_effect = payload
        else:
            response.json.return_value = payload
        return response

    return _create_response


@pytest.fixture
def utc():
    """Shorthand for building aware UTC datetimes."""

    def _utc(*args):
        return datetime(*args, tzinfo=timezone.utc)

    return _utc
