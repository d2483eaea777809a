"""
Pytest configuration and shared fixtures.
"""

import pytest

import logging_config
from models.hook import Hook

CONFIG_ENV_VARS = (
    "HOOKRUNNER_CONFIG",
    "HOOKRUNNER_LISTEN_ADDRESS",
    "HOOKRUNNER_LOG_DIR",
    "HOOKRUNNER_COMMAND_TIMEOUT",
    "HOOKRUNNER_SECRET",
    "HOOKRUNNER_VERBOSITY",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's environment and verbosity out of the tests."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    logging_config.set_verbosity(0)
    yield
    logging_config.set_verbosity(0)


@pytest.fixture
def make_hook():
    """Factory for hooks with compiled templates."""

    def factory(**kwargs):
        kwargs.setdefault("url", "/test")
        kwargs.setdefault("timeout", 5)
        hook = Hook(**kwargs)
        hook.create_templates()
        return hook

    return factory


@pytest.fixture
def output_file(tmp_path):
    """File that test commands append to, for observing side effects."""
    return tmp_path / "output.txt"


def append_command(path, text):
    """Command template that appends a line of `text` to `path`."""
    return ["sh", "-c", f"echo {text} >> '{path}'"]


def read_lines(path):
    if not path.exists():
        return []
    return path.read_text().splitlines()
