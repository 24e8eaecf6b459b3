"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation and immutability
- ToolRegistry list_tools, tool_count, call_tool
- Error translation for sync, validation and unexpected errors
"""

import asyncio
import unittest
from unittest.mock import MagicMock

import mcp.types as types

from omnivore_sync.errors import TransientError, UnauthorizedError
from omnivore_sync.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(service, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        handler=handler,
    )


def _raising(exc: Exception):
    async def handler(service, args):
        raise exc

    return handler


class TestToolSpec(unittest.TestCase):
    def test_creation(self):
        spec = _make_spec("test_tool")
        self.assertEqual(spec.tool.name, "test_tool")
        self.assertIsNotNone(spec.handler)

    def test_frozen(self):
        spec = _make_spec("test_tool")
        with self.assertRaises(AttributeError):
            spec.handler = None


class TestToolRegistry(unittest.TestCase):
    def test_counts_and_lists(self):
        registry = ToolRegistry([_make_spec("ping"), _make_spec("omnivore_sync")])
        self.assertEqual(registry.tool_count(), 2)
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "omnivore_sync"])

    def test_later_spec_replaces_same_name(self):
        registry = ToolRegistry([_make_spec("dup"), _make_spec("dup")])
        self.assertEqual(registry.tool_count(), 1)

    def test_call_tool_dispatches_to_handler(self):
        """call_tool() invokes the ToolSpec handler with (service, args)."""
        calls = []

        async def handler(service, args):
            calls.append((service, args))
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="dispatched")]
            )

        registry = ToolRegistry([_make_spec("dispatch", handler)])
        service = MagicMock()

        result = asyncio.run(registry.call_tool("dispatch", {"k": "v"}, service))

        self.assertEqual(calls, [(service, {"k": "v"})])
        self.assertEqual(result.content[0].text, "dispatched")

    def test_none_arguments_become_empty_dict(self):
        calls = []

        async def handler(service, args):
            calls.append(args)
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="ok")]
            )

        registry = ToolRegistry([_make_spec("noargs", handler)])
        asyncio.run(registry.call_tool("noargs", None, MagicMock()))
        self.assertEqual(calls, [{}])

    def test_unknown_tool_raises(self):
        registry = ToolRegistry([])
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("missing", {}, MagicMock()))

    def test_unauthorized_translated(self):
        registry = ToolRegistry(
            [_make_spec("t", _raising(UnauthorizedError("Omnivore rejected the API key")))]
        )
        result = asyncio.run(registry.call_tool("t", {}, MagicMock()))
        self.assertTrue(result.isError)
        self.assertIn("Error (unauthorized)", result.content[0].text)
        self.assertIn("OMNIVORE_API_KEY", result.content[0].text)

    def test_transient_translated(self):
        registry = ToolRegistry([_make_spec("t", _raising(TransientError("timed out")))])
        result = asyncio.run(registry.call_tool("t", {}, MagicMock()))
        self.assertIn("Error (transient_error): timed out", result.content[0].text)

    def test_value_error_is_validation_error(self):
        registry = ToolRegistry([_make_spec("t", _raising(ValueError("bad arg")))])
        result = asyncio.run(registry.call_tool("t", {}, MagicMock()))
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error): bad arg", result.content[0].text)

    def test_unexpected_error_is_server_error(self):
        registry = ToolRegistry([_make_spec("t", _raising(RuntimeError("kaboom")))])
        result = asyncio.run(registry.call_tool("t", {}, MagicMock()))
        self.assertTrue(result.isError)
        self.assertIn("Error (server_error): kaboom", result.content[0].text)


if __name__ == "__main__":
    unittest.main()
