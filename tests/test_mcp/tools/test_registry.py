"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolSpec immutability
- ToolRegistry permission filtering, list_tools, tool_count
- call_tool dispatch and exception translation
- load_permissions_file parsing and validation
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import mcp.types as types

from task_sync.mcp.tools.registry import (
    SYNC_RUN,
    SYNC_VIEW,
    TASK_MODIFY,
    TASK_VIEW,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)
from task_sync.sync.errors import (
    ConnectivityError,
    StorageError,
    TransportError,
)


def _make_spec(
    name: str,
    permissions: frozenset[str] | None = None,
    handler=None,
) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(ctx, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=permissions or frozenset(),
        handler=handler,
    )


def _raising(exc: Exception):
    async def handler(ctx, args):
        raise exc

    return handler


def _text(result: types.CallToolResult) -> str:
    return result.content[0].text


class TestToolSpec(unittest.TestCase):
    def test_frozen(self):
        spec = _make_spec("task_list", frozenset({TASK_VIEW}))
        with self.assertRaises(AttributeError):
            spec.permissions = frozenset({TASK_MODIFY})


class TestToolRegistryFiltering(unittest.TestCase):
    def setUp(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("task_list", frozenset({TASK_VIEW})),
            _make_spec("task_create", frozenset({TASK_MODIFY})),
            _make_spec("sync_status", frozenset({SYNC_VIEW})),
            _make_spec("sync_run", frozenset({SYNC_RUN})),
            _make_spec("needs_both", frozenset({TASK_VIEW, SYNC_VIEW})),
        ]

    def test_no_filter(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 6)

    def test_read_only_permissions(self):
        registry = ToolRegistry(self.specs, frozenset({TASK_VIEW, SYNC_VIEW}))
        names = {t.name for t in registry.list_tools()}
        self.assertEqual(
            names, {"ping", "task_list", "sync_status", "needs_both"}
        )

    def test_partial_permissions_exclude_multi_permission_tool(self):
        registry = ToolRegistry(self.specs, frozenset({TASK_VIEW}))
        names = {t.name for t in registry.list_tools()}
        self.assertNotIn("needs_both", names)
        self.assertIn("ping", names)

    def test_list_tools_returns_tool_objects(self):
        registry = ToolRegistry(self.specs[:2])
        tools = registry.list_tools()
        self.assertTrue(all(isinstance(t, types.Tool) for t in tools))


class TestToolRegistryCallTool(unittest.TestCase):
    def setUp(self):
        self.ctx = MagicMock()

    def _call(self, registry, name, arguments=None):
        return asyncio.run(registry.call_tool(name, arguments, self.ctx))

    def test_dispatches_with_args_and_context(self):
        seen = {}

        async def handler(ctx, args):
            seen["ctx"] = ctx
            seen["args"] = args
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="done")]
            )

        registry = ToolRegistry([_make_spec("task_get", handler=handler)])
        result = self._call(registry, "task_get", {"task_id": "t1"})

        self.assertEqual(_text(result), "done")
        self.assertIs(seen["ctx"], self.ctx)
        self.assertEqual(seen["args"], {"task_id": "t1"})

    def test_none_arguments_become_empty_dict(self):
        seen = {}

        async def handler(ctx, args):
            seen["args"] = args
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("task_list", handler=handler)])
        self._call(registry, "task_list", None)
        self.assertEqual(seen["args"], {})

    def test_unknown_tool_raises(self):
        registry = ToolRegistry([_make_spec("ping")])
        with self.assertRaises(ValueError):
            self._call(registry, "nope")

    def test_filtered_out_tool_raises(self):
        registry = ToolRegistry(
            [_make_spec("sync_run", frozenset({SYNC_RUN}))],
            frozenset({SYNC_VIEW}),
        )
        with self.assertRaises(ValueError):
            self._call(registry, "sync_run")

    def test_value_error_becomes_validation_error(self):
        registry = ToolRegistry(
            [_make_spec("task_create", handler=_raising(ValueError("Title cannot be empty")))]
        )
        result = self._call(registry, "task_create")
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error): Title cannot be empty", _text(result))

    def test_storage_error_becomes_sync_error(self):
        registry = ToolRegistry(
            [_make_spec("task_create", handler=_raising(StorageError("disk full")))]
        )
        result = self._call(registry, "task_create")
        self.assertTrue(result.isError)
        self.assertIn("Error (sync_error): disk full", _text(result))
        self.assertIn("database path", _text(result))

    def test_connectivity_error_action(self):
        registry = ToolRegistry(
            [_make_spec("sync_run", handler=_raising(ConnectivityError("offline")))]
        )
        self.assertIn("remote API is reachable", _text(self._call(registry, "sync_run")))

    def test_other_sync_error_action(self):
        registry = ToolRegistry(
            [_make_spec("sync_run", handler=_raising(TransportError("timeout")))]
        )
        self.assertIn("queued changes are kept", _text(self._call(registry, "sync_run")))

    def test_unexpected_error_becomes_server_error(self):
        registry = ToolRegistry(
            [_make_spec("task_list", handler=_raising(RuntimeError("kaboom")))]
        )
        result = self._call(registry, "task_list")
        self.assertTrue(result.isError)
        self.assertIn("Error (server_error): kaboom", _text(result))


class TestLoadPermissionsFile(unittest.TestCase):
    def _write(self, text: str) -> Path:
        handle = tempfile.NamedTemporaryFile(
            "w", suffix=".permissions", delete=False
        )
        with handle:
            handle.write(text)
        path = Path(handle.name)
        self.addCleanup(path.unlink)
        return path

    def test_load_valid_file(self):
        path = self._write("# read only\nTASK_VIEW\n\nSYNC_VIEW\nTASK_VIEW\n")
        self.assertEqual(
            load_permissions_file(path), frozenset({TASK_VIEW, SYNC_VIEW})
        )

    def test_file_not_found(self):
        with self.assertRaises(FileNotFoundError):
            load_permissions_file("/nonexistent/perms.txt")

    def test_only_comments(self):
        path = self._write("# nothing here\n\n")
        with self.assertRaisesRegex(ValueError, "No permissions found"):
            load_permissions_file(path)

    def test_invalid_permission(self):
        path = self._write("TASK_VIEW\ntask-modify\n")
        with self.assertRaisesRegex(ValueError, "line 2"):
            load_permissions_file(path)
