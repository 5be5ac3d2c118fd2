"""
Pytest configuration and fixtures for integration tests.
"""

import logging
import socket

import pytest


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Integration tests that run the connector against a local WebSocket server"
    )


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """
    Setup logging for all tests.

    This fixture runs automatically for all tests and ensures
    log output is captured and displayed.
    """
    caplog.set_level(logging.INFO)

    # Set specific loggers to appropriate levels
    logging.getLogger('okx_signals.connectors.okx_stream').setLevel(logging.INFO)
    logging.getLogger('okx_signals.connectors.heartbeat').setLevel(logging.INFO)
    logging.getLogger('okx_signals.connectors.message_decoder').setLevel(logging.WARNING)
    logging.getLogger('websockets').setLevel(logging.WARNING)


@pytest.fixture
def unused_port():
    """A local TCP port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to handle integration test markers.

    This automatically marks all tests in the integration directory
    as 'integration' tests.
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
