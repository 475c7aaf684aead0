"""
Fixtures and test configuration for the Fundament test suite.
"""

import tempfile
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest
import yaml

from fundament.clock import ManualClock
from fundament.engine import Fundament
from fundament.settings import Settings


class InlineExecutor(Executor):
    """Executor running every submitted call immediately on the caller's thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class PendingFetch:
    """
    Fetch function whose results are resolved by the test.

    Every call returns a new pending Future; ``resolve`` completes the oldest
    outstanding one.
    """

    def __init__(self):
        self.calls = 0
        self.outstanding = []

    def __call__(self):
        self.calls += 1
        future = Future()
        self.outstanding.append(future)
        return future

    def resolve(self, value):
        self.outstanding.pop(0).set_result(value)


class Recorder:
    """Listener recording every value it receives."""

    def __init__(self, name="recorder", log=None):
        self.name = name
        self.values = []
        self.log = log

    def __call__(self, value):
        self.values.append(value)
        if self.log is not None:
            self.log.append(self.name)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def test_settings(temp_dir):
    """Create test settings rooted in a temporary directory."""
    return Settings(
        root_dir=temp_dir,
        log_level="DEBUG",
        max_workers=2,
        request_timeout=5,
    )


@pytest.fixture
def clock():
    """A manually advanced clock starting at t=0."""
    return ManualClock()


@pytest.fixture
def executor():
    """An executor running fetches inline."""
    return InlineExecutor()


@pytest.fixture
def engine(test_settings, clock, executor):
    """An engine driven by the manual clock and inline executor."""
    with Fundament(test_settings, clock=clock, executor=executor) as engine:
        yield engine


@pytest.fixture
def pending_fetch():
    return PendingFetch()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def counter():
    """Fetch function returning 1, 2, 3, ... on successive calls."""
    state = {"n": 0}

    def fetch():
        state["n"] += 1
        return state["n"]

    return fetch


@pytest.fixture
def sources_mapping():
    """Sample data source configuration mapping."""
    return {
        "weather": {
            "format": "json",
            "url": "https://example.com/weather.json",
            "interval": 10,
        },
        "headlines": {
            "format": "string",
            "url": "https://example.com/headlines.txt",
        },
    }


@pytest.fixture
def config_file(temp_dir, sources_mapping):
    """Write the sample mapping to the default config location."""
    config_dir = temp_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / "fundament.yml"
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(sources_mapping, fh)
    return path
