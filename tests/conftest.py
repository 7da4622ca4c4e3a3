"""Shared pytest fixtures for task-sync-server tests."""

import pytest
from dotenv import load_dotenv

from task_sync.config import Config
from task_sync.core.database import Database
from task_sync.store import TaskStore
from task_sync.sync.queue import MutationQueue

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live remote API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live remote API"
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
def mock_config(tmp_path):
    """Create a Config instance pointing at a temporary database."""
    return Config(
        api_url="http://sync.example.com/api",
        db_path=str(tmp_path / "tasks.db"),
    )


@pytest.fixture
def db(tmp_path):
    """Open a fresh SQLite database under tmp_path."""
    database = Database(tmp_path / "tasks.db")
    yield database
    database.close()


@pytest.fixture
def queue(db):
    return MutationQueue(db)


@pytest.fixture
def store(db, queue):
    return TaskStore(db, queue)
