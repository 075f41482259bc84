from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import anyio
from mcp.server.fastmcp.tools import Tool
from mcp.shared.memory import create_connected_server_and_client_session
from mcp.types import CallToolResult
from pydantic import ValidationError

from svg_graphs import server


TOOL_NAMES = (
    "renderBarGraph",
    "renderLineGraph",
    "renderGraphFromCsv",
    "getGraphPalette",
    "getRenderHistory",
)


class TestToolContracts(unittest.TestCase):
    def _tool(self, name: str) -> Tool:
        tool = server.mcp._tool_manager.get_tool(name)  # type: ignore[attr-defined]
        self.assertIsNotNone(tool, name)
        assert tool is not None
        return tool

    def test_tools_registered(self) -> None:
        for name in TOOL_NAMES:
            self._tool(name)

    def test_csv_kind_schema_lists_graph_kinds(self) -> None:
        props = self._tool("renderGraphFromCsv").parameters.get("properties", {})
        self.assertEqual(set(props.get("kind", {}).get("enum", [])), {"bar", "line"})
        self.assertIn("csv_path", self._tool("renderGraphFromCsv").parameters.get("required", []))

    def test_render_tools_require_data(self) -> None:
        for name in ("renderBarGraph", "renderLineGraph"):
            params = self._tool(name).parameters
            self.assertIn("data", params.get("required", []), name)

    def test_argument_validation(self) -> None:
        bar = self._tool("renderBarGraph")
        with self.assertRaises(ValidationError):
            bar.fn_metadata.arg_model.model_validate({"data": "not-a-dataset"})
        with self.assertRaises(ValidationError):
            bar.fn_metadata.arg_model.model_validate({"data": {"A": "ten"}})
        csv_tool = self._tool("renderGraphFromCsv")
        with self.assertRaises(ValidationError):
            csv_tool.fn_metadata.arg_model.model_validate({"csv_path": "a.csv", "kind": "pie"})


class TestInMemorySession(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp(prefix="svg_graphs_session_test_"))
        server._configure_server(workdir=self.temp_dir)

    def test_palette_and_history_over_session(self) -> None:
        async def _run() -> tuple[dict, dict]:
            async with create_connected_server_and_client_session(server.mcp._mcp_server) as session:  # type: ignore[attr-defined]
                tools = await session.list_tools()
                self.assertTrue(set(TOOL_NAMES) <= {tool.name for tool in tools.tools})
                palette = await session.call_tool("getGraphPalette", {})
                history = await session.call_tool("getRenderHistory", {"limit": 5})
                self.assertFalse(palette.isError)
                self.assertFalse(history.isError)
                return json.loads(palette.content[0].text), json.loads(history.content[0].text)

        palette, history = anyio.run(_run)
        self.assertEqual(palette["marker_color"], "#2BA6CB")
        self.assertEqual(len(palette["palette"]), 10)
        self.assertEqual(history["returned"], 0)

    def test_invalid_render_reports_tool_error(self) -> None:
        async def _run() -> CallToolResult:
            async with create_connected_server_and_client_session(server.mcp._mcp_server) as session:  # type: ignore[attr-defined]
                return await session.call_tool("renderBarGraph", {"data": {"A": 0, "B": 0}})

        result = anyio.run(_run)
        self.assertTrue(result.isError)


if __name__ == "__main__":
    unittest.main()
