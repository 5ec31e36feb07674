"""Unit tests configuration file."""

import os

import pytest

from protoform.schema import TypeDescriptor, load

TESTS_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def primary():
    """Load schema text and return its primary message descriptor."""

    def _primary(text: str) -> TypeDescriptor:
        descriptor = load(text).primary()
        assert descriptor is not None
        return descriptor

    return _primary


@pytest.fixture
def fixture_path():
    """Absolute path of a file under the tests directory."""

    def _fixture_path(*parts: str) -> str:
        return os.path.join(TESTS_DIR, *parts)

    return _fixture_path
