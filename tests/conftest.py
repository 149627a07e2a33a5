"""Shared test fixtures for pgtxn."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from typer.testing import CliRunner

from pgtxn.cli.main import app
from tests.fakes import FakeHandle


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_runner(runner):
    """Invoke the CLI app with the given arguments."""

    def invoke(*args: str, **kwargs):
        return runner.invoke(app, list(args), **kwargs)

    return invoke


@pytest.fixture
def temp_dir():
    """Temporary directory for test files."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def handle():
    return FakeHandle()


@pytest.fixture
def releases():
    """Release callback that records every call."""
    calls: list[str] = []

    def release() -> None:
        calls.append("release")

    release.calls = calls  # type: ignore[attr-defined]
    return release
