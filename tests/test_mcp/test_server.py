"""Tests for the MCP server module: ping, routing, sync_once and the CLI.

Detailed handler behaviour lives in tests/test_mcp/tools/; this file only
covers the server layer.
"""

import asyncio
import sys
from unittest.mock import MagicMock, patch

import pytest
import requests

from task_sync import __version__
from task_sync.config import Config
from task_sync.logger import DEFAULT_LOG_FILE
from task_sync.mcp import server as server_module
from task_sync.mcp.server import (
    PING_SPEC,
    build_registry,
    get_context,
    handle_call_tool,
    handle_list_tools,
    run,
    set_context,
    set_registry,
    sync_once,
)
from task_sync.mcp.tools import ALL_SPECS


@pytest.fixture
def installed(app_ctx):
    """Install the global registry and context, cleared afterwards."""
    set_registry(build_registry())
    set_context(app_ctx)
    yield app_ctx
    set_registry(None)
    set_context(None)


# ---------------------------------------------------------------------------
# Ping and routing
# ---------------------------------------------------------------------------


class TestPing:
    async def test_online(self, app_ctx):
        result = await PING_SPEC.handler(app_ctx, {})

        assert not result.isError
        assert "Remote API reachable" in result.content[0].text

    async def test_offline(self, app_ctx, remote):
        remote.online = False

        result = await PING_SPEC.handler(app_ctx, {})

        assert result.isError
        assert "unreachable" in result.content[0].text
        assert "Local task tools keep working" in result.content[0].text


class TestRouting:
    async def test_all_tools_listed(self, installed):
        names = [t.name for t in await handle_list_tools()]

        assert names[0] == "ping"
        assert len(names) == len(ALL_SPECS) + 1
        assert {"task_create", "sync_run", "sync_requeue"} <= set(names)

    async def test_call_routes_to_handler(self, installed):
        result = await handle_call_tool("task_create", {"title": "Routed"})

        assert not result.isError
        assert installed.queue.count() == 1

    async def test_unknown_tool(self, installed):
        result = await handle_call_tool("task_archive", {})

        assert result.isError
        assert "unknown_tool" in result.content[0].text

    def test_context_required(self):
        set_context(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_context()


class TestBuildRegistry:
    def test_permissions_file_filters(self, tmp_path, capsys):
        perms = tmp_path / "read-only.permissions"
        perms.write_text("TASK_VIEW\nSYNC_VIEW\n")

        registry = build_registry(str(perms))

        names = {t.name for t in registry.list_tools()}
        assert names == {
            "ping",
            "task_get",
            "task_list",
            "sync_status",
            "sync_dead_entries",
        }
        assert "5 of" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# sync_once
# ---------------------------------------------------------------------------


class TestSyncOnce:
    @pytest.fixture
    def config(self, tmp_path):
        return Config(
            api_url="http://sync.example.com/api",
            db_path=str(tmp_path / "tasks.db"),
        )

    async def test_success_exit_code(self, config, capsys):
        with (
            patch("task_sync.mcp.server.setup_logging"),
            patch("task_sync.mcp.server.resolve_config", return_value=config),
            patch("task_sync.core.client.requests.Session.get") as mock_get,
        ):
            mock_get.return_value = MagicMock(status_code=200)
            code = await sync_once()

        assert code == 0
        assert "Sync completed" in capsys.readouterr().out

    async def test_offline_exit_code(self, config, capsys):
        with (
            patch("task_sync.mcp.server.setup_logging"),
            patch("task_sync.mcp.server.resolve_config", return_value=config),
            patch(
                "task_sync.core.client.requests.Session.get",
                side_effect=requests.ConnectionError("refused"),
            ),
        ):
            code = await sync_once({"debug": True})

        assert code == 1
        out = capsys.readouterr().out
        assert "Sync failed" in out
        assert "Remote authority is unreachable" in out


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


class TestRunCli:
    def test_version(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["task-sync-server", "--version"])

        with pytest.raises(SystemExit) as exc_info:
            run()

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_init_config(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(sys, "argv", ["task-sync-server", "--init-config"])
        target = tmp_path / ".task_sync" / "config.yml"

        with patch(
            "task_sync.mcp.server.ensure_config", return_value=target
        ) as mock_ensure:
            with pytest.raises(SystemExit) as exc_info:
                run()

        assert exc_info.value.code == 0
        mock_ensure.assert_called_once_with()
        assert str(target) in capsys.readouterr().err

    def test_overrides_passed_to_main(self, monkeypatch):
        monkeypatch.setattr(
            sys,
            "argv",
            ["task-sync-server", "--api-url", "http://other/api", "--insecure"],
        )
        main_mock = MagicMock(name="main")

        with (
            patch.object(server_module, "main", main_mock),
            patch.object(asyncio, "run") as mock_run,
        ):
            run()

        mock_run.assert_called_once()
        main_mock.assert_called_once_with(
            config_overrides={
                "url": "http://other/api",
                "insecure": True,
                "log_file": DEFAULT_LOG_FILE,
            }
        )

    def test_sync_once_exit_code(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["task-sync-server", "--sync-once"])

        with (
            patch.object(server_module, "sync_once", MagicMock()),
            patch.object(asyncio, "run", return_value=1),
        ):
            with pytest.raises(SystemExit) as exc_info:
                run()

        assert exc_info.value.code == 1

    def test_startup_error_exits_1(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["task-sync-server"])

        with (
            patch.object(server_module, "main", MagicMock()),
            patch.object(
                asyncio, "run", side_effect=RuntimeError("Configuration error")
            ),
        ):
            with pytest.raises(SystemExit) as exc_info:
                run()

        assert exc_info.value.code == 1
