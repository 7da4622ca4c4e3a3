"""Fixtures for MCP handler tests: a real store behind an AppContext."""

import pytest
import requests

from task_sync.mcp.context import AppContext
from task_sync.sync.engine import SyncEngine


class StubRemote:
    """Remote client that is either down or accepts every entry."""

    def __init__(self) -> None:
        self.base_url = "http://sync.example.com/api"
        self.online = True
        self.posted: list[dict] = []

    def check_health(self, timeout=None):
        if not self.online:
            raise requests.ConnectionError("connection refused")
        return {"status": "ok"}

    def post_batch(self, payload, timeout=None):
        self.posted.append(payload)
        return {
            "processed_items": [
                {
                    "client_id": item["id"],
                    "server_id": f"srv-{item['task_id']}",
                    "status": "success",
                }
                for item in payload["items"]
            ]
        }


@pytest.fixture
def remote():
    return StubRemote()


@pytest.fixture
def app_ctx(mock_config, db, queue, store, remote):
    engine = SyncEngine.from_config(mock_config, queue, store, remote)
    return AppContext(
        config=mock_config,
        db=db,
        queue=queue,
        store=store,
        client=remote,
        engine=engine,
    )
