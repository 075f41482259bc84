#!/usr/bin/env python3
from __future__ import annotations

import argparse
import base64
import json
import sys
from pathlib import Path
from typing import Any

import anyio
from mcp.client.session import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from svg_graphs.datasets import DEMO_DATA


def _extract_call_result(payload: Any) -> Any:
    structured = getattr(payload, "structuredContent", None)
    if structured is not None:
        if isinstance(structured, dict) and "result" in structured:
            return structured["result"]
        return structured

    content = getattr(payload, "content", None) or []
    for item in content:
        text = getattr(item, "text", None)
        if text is None:
            continue
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return None


def _extract_svg(payload: Any) -> str | None:
    for item in getattr(payload, "content", None) or []:
        if getattr(item, "mimeType", None) == "image/svg+xml":
            return base64.b64decode(item.data).decode("utf-8")
    return None


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


async def _run_smoke_test(args: argparse.Namespace) -> None:
    workdir = Path(args.workdir).expanduser().resolve()
    workdir.mkdir(parents=True, exist_ok=True)

    server_params = StdioServerParameters(
        command=args.server_command,
        args=[
            "--transport",
            "stdio",
            "--workdir",
            str(workdir),
            "--log-level",
            "INFO",
        ],
        cwd=str(Path(args.server_cwd).expanduser().resolve()),
    )

    async with stdio_client(server_params) as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            init = await session.initialize()
            print(f"Connected to {init.serverInfo.name} {init.serverInfo.version}")

            tools_result = await session.list_tools()
            tool_names = {tool.name for tool in tools_result.tools}
            required_tools = {
                "renderBarGraph",
                "renderLineGraph",
                "renderGraphFromCsv",
                "getGraphPalette",
                "getRenderHistory",
            }
            missing_tools = required_tools - tool_names
            _require(not missing_tools, f"Missing required tools: {sorted(missing_tools)}")
            print(f"Tool check passed ({len(tool_names)} tools)")

            palette = _extract_call_result(await session.call_tool("getGraphPalette", {}))
            _require(isinstance(palette, dict), "getGraphPalette did not return an object")
            _require(len(palette.get("palette", [])) > 0, "Palette is empty")
            print(f"Palette check passed ({len(palette['palette'])} colours)")

            bar_result = await session.call_tool("renderBarGraph", {"data": DEMO_DATA})
            _require(not bar_result.isError, f"renderBarGraph failed: {bar_result}")
            bar = _extract_call_result(bar_result)
            _require(isinstance(bar, dict), "renderBarGraph did not return an object")
            _require(Path(str(bar.get("image_path"))).exists(), "Bar graph SVG was not written")
            bar_svg = _extract_svg(bar_result) or ""
            _require(bar_svg.count("<rect") == len(DEMO_DATA) + 1, "Unexpected bar count in SVG")
            print(f"Bar graph check passed ({bar['image_path']})")

            line_result = await session.call_tool(
                "renderLineGraph",
                {"data": list(DEMO_DATA.values()), "width": 640, "height": 360},
            )
            _require(not line_result.isError, f"renderLineGraph failed: {line_result}")
            line = _extract_call_result(line_result)
            _require(isinstance(line, dict), "renderLineGraph did not return an object")
            _require(line.get("labeled") is False, "List data should render without category labels")
            line_svg = _extract_svg(line_result) or ""
            _require("<polyline" in line_svg, "Line graph SVG has no polyline")
            print(f"Line graph check passed ({line['image_path']})")

            csv_path = workdir / "smoke_data.csv"
            csv_path.write_text(
                "name,score\n" + "".join(f"{label},{value}\n" for label, value in DEMO_DATA.items()),
                encoding="utf-8",
            )
            csv_result = await session.call_tool(
                "renderGraphFromCsv",
                {"csv_path": str(csv_path), "kind": "line"},
            )
            _require(not csv_result.isError, f"renderGraphFromCsv failed: {csv_result}")
            csv_payload = _extract_call_result(csv_result)
            _require(isinstance(csv_payload, dict), "renderGraphFromCsv did not return an object")
            _require(csv_payload.get("points") == len(DEMO_DATA), "CSV row count mismatch")
            print("CSV render check passed")

            rejected = await session.call_tool("renderBarGraph", {"data": {"A": 0, "B": 0}})
            _require(rejected.isError, "All-zero data should be rejected")
            print("Degenerate data check passed")

            history = _extract_call_result(await session.call_tool("getRenderHistory", {"limit": 10}))
            _require(isinstance(history, dict), "getRenderHistory did not return an object")
            events = [item.get("event") for item in history.get("events", [])]
            _require(events.count("render_success") >= 3, f"Unexpected render history: {events}")
            _require("render_rejected" in events, "Rejected render missing from history")
            print(f"History check passed ({len(events)} events)")

    print("MCP smoke test passed")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="End-to-end smoke test for svg-graphs-mcp via MCP stdio transport"
    )
    parser.add_argument(
        "--server-command",
        default="svg-graphs-mcp",
        help="Command used to launch the MCP server",
    )
    parser.add_argument(
        "--server-cwd",
        default=str(Path(__file__).resolve().parent),
        help="Working directory for launching the server",
    )
    parser.add_argument(
        "--workdir",
        default=str((Path(__file__).resolve().parent / ".tmp_smoke").resolve()),
        help="Output directory used by the server during the smoke test",
    )
    args = parser.parse_args()

    try:
        anyio.run(_run_smoke_test, args)
        return 0
    except Exception as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
