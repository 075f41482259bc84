from __future__ import annotations

import argparse
import base64
import json
import logging
import os
from collections import deque
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import mcp.types as types
from mcp.server.fastmcp import FastMCP
from mcp.types import CallToolResult

from .datasets import load_csv_dataset
from .graphs import MARKER_COLOR, BarGraph, Graph, LineGraph, build_graph
from .layout import PALETTE
from .models import DataSet


mcp = FastMCP("svg-graphs-mcp")

_LOGGER = logging.getLogger(__name__)


def _read_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _read_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning("Ignoring non-integer %s=%r", name, raw)
        return default


_DEFAULT_WORKDIR = Path(os.getenv("SVG_GRAPHS_MCP_WORKDIR", os.getcwd()))
_DEFAULT_WIDTH = _read_env_int("SVG_GRAPHS_MCP_WIDTH", 500)
_DEFAULT_HEIGHT = _read_env_int("SVG_GRAPHS_MCP_HEIGHT", 400)
_DEFAULT_XML_DECLARATION = _read_env_bool("SVG_GRAPHS_MCP_XML_DECLARATION", default=True)
_DEFAULT_LOG_LEVEL = os.getenv("SVG_GRAPHS_MCP_LOG_LEVEL", "WARNING")
_HISTORY_LIMIT = max(10, _read_env_int("SVG_GRAPHS_MCP_HISTORY_LIMIT", 200))

_workdir: Path = _DEFAULT_WORKDIR.expanduser().resolve()
_default_width: int = _DEFAULT_WIDTH
_default_height: int = _DEFAULT_HEIGHT
_xml_declaration: bool = _DEFAULT_XML_DECLARATION
_render_history: deque[dict[str, Any]] = deque(maxlen=_HISTORY_LIMIT)


def _log_render_event(level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    _render_history.append(
        {
            "timestamp": datetime.now().isoformat(),
            "level": logging.getLevelName(level),
            **payload,
        }
    )
    try:
        encoded = json.dumps(payload, sort_keys=True, default=str)
    except (TypeError, ValueError):
        encoded = str(payload)
    _LOGGER.log(level, "svg_graphs_render %s", encoded)


def _safe_name(name: str) -> str:
    cleaned = "".join(ch if (ch.isalnum() or ch in "_-") else "_" for ch in name)
    return cleaned.strip("_") or "graph"


def _resolve_image_output_path(*, kind: str, name: str, output_path: str | None) -> Path:
    if output_path:
        target = Path(output_path).expanduser().resolve()
        if target.suffix.lower() != ".svg":
            target = target.with_suffix(".svg")
        return target
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (_workdir / "images" / kind / f"{stamp}_{_safe_name(name)}.svg").resolve()


def _image_tool_result(payload: dict[str, Any], svg_text: str) -> CallToolResult:
    data_b64 = base64.b64encode(svg_text.encode("utf-8")).decode("ascii")
    content: list[types.TextContent | types.ImageContent] = [
        types.ImageContent(type="image", mimeType="image/svg+xml", data=data_b64),
        types.TextContent(type="text", text=json.dumps(payload, indent=2)),
    ]
    return CallToolResult(content=content, structuredContent=payload, isError=False)


def _coerce_data(data: dict[str, float] | list[float] | DataSet) -> DataSet:
    return DataSet.from_mapping(data)


def _write_graph(
    graph: Graph,
    *,
    name: str,
    output_path: str | None,
    extra: dict[str, Any] | None = None,
) -> CallToolResult:
    svg_text = graph.render(xml_declaration=_xml_declaration)
    target = _resolve_image_output_path(kind=graph.kind, name=name, output_path=output_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(svg_text + "\n", encoding="utf-8")

    payload: dict[str, Any] = {
        "image_path": str(target),
        "format": "svg",
        **graph.summary(),
        "labels": [str(label) for label in graph.data.labels],
        "xml_declaration": _xml_declaration,
        "bytes": len(svg_text.encode("utf-8")),
    }
    if extra:
        payload.update(extra)
    _log_render_event(
        logging.INFO,
        "render_success",
        kind=graph.kind,
        image_path=str(target),
        points=len(graph.data),
        width=graph.width,
        height=graph.height,
    )
    return _image_tool_result(payload, svg_text)


def _render_tool(kind: str, build: Callable[[], Graph], **fields: Any) -> Graph:
    try:
        return build()
    except ValueError as exc:
        _log_render_event(logging.WARNING, "render_rejected", kind=kind, error=str(exc), **fields)
        raise


@mcp.tool()
def renderBarGraph(
    data: dict[str, float] | list[float],
    width: int | None = None,
    height: int | None = None,
    output_path: str | None = None,
    name: str = "bar_graph",
    color_per_bar: bool = False,
) -> CallToolResult:
    """
    Render a bar graph to an SVG file and return the image through MCP.

    `data` is either an object mapping labels to values (labels are drawn under the
    axis unless every key is an integer such as "0", "1") or a plain list of numbers.
    All bars share one series colour unless `color_per_bar` is set.
    """
    w = _default_width if width is None else width
    h = _default_height if height is None else height
    graph = _render_tool(
        "bar",
        lambda: BarGraph(w, h, _coerce_data(data), color_per_bar=color_per_bar),
        width=w,
        height=h,
    )
    return _write_graph(graph, name=name, output_path=output_path)


@mcp.tool()
def renderLineGraph(
    data: dict[str, float] | list[float],
    width: int | None = None,
    height: int | None = None,
    output_path: str | None = None,
    name: str = "line_graph",
) -> CallToolResult:
    """
    Render a line graph to an SVG file and return the image through MCP.

    Points are centred in equal-width sections and joined in data order, each with a
    round marker.
    """
    w = _default_width if width is None else width
    h = _default_height if height is None else height
    graph = _render_tool(
        "line",
        lambda: LineGraph(w, h, _coerce_data(data)),
        width=w,
        height=h,
    )
    return _write_graph(graph, name=name, output_path=output_path)


@mcp.tool()
def renderGraphFromCsv(
    csv_path: str,
    kind: Literal["bar", "line"] = "bar",
    width: int | None = None,
    height: int | None = None,
    output_path: str | None = None,
    delimiter: str = ",",
    color_per_bar: bool = False,
) -> CallToolResult:
    """
    Load a `label,value` CSV (or a single column of values) and render it as a graph.

    A first row whose value column is not numeric is treated as a header.
    """
    source = Path(csv_path).expanduser().resolve()
    w = _default_width if width is None else width
    h = _default_height if height is None else height
    options: dict[str, Any] = {"color_per_bar": color_per_bar} if kind == "bar" else {}

    def _build() -> Graph:
        dataset = load_csv_dataset(source, delimiter=delimiter)
        return build_graph(kind, w, h, dataset, **options)

    graph = _render_tool(
        kind,
        _build,
        width=w,
        height=h,
        csv_path=str(source),
    )
    return _write_graph(
        graph,
        name=source.stem,
        output_path=output_path,
        extra={"csv_path": str(source)},
    )


@mcp.tool()
def getGraphPalette() -> dict[str, Any]:
    """Return the fixed colour palette in the order series colours are assigned."""
    return {
        "palette": list(PALETTE),
        "marker_color": MARKER_COLOR,
    }


@mcp.tool()
def getRenderHistory(limit: int = 50) -> dict[str, Any]:
    """Return the most recent render events, newest last."""
    events = list(_render_history)[-limit:] if limit > 0 else []
    return {
        "history_limit": _render_history.maxlen,
        "returned": len(events),
        "events": events,
    }


def _configure_server(
    *,
    workdir: Path,
    width: int | None = None,
    height: int | None = None,
    xml_declaration: bool | None = None,
) -> None:
    global _workdir, _default_width, _default_height, _xml_declaration
    _workdir = workdir.expanduser().resolve()
    _default_width = _DEFAULT_WIDTH if width is None else int(width)
    _default_height = _DEFAULT_HEIGHT if height is None else int(height)
    _xml_declaration = _DEFAULT_XML_DECLARATION if xml_declaration is None else bool(xml_declaration)
    _render_history.clear()


def main() -> None:
    parser = argparse.ArgumentParser(description="MCP server rendering SVG bar and line graphs")
    parser.add_argument(
        "--workdir",
        default=os.getenv("SVG_GRAPHS_MCP_WORKDIR", os.getcwd()),
        help="Directory where rendered images are written",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=_DEFAULT_WIDTH,
        help="Default graph width in pixels",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=_DEFAULT_HEIGHT,
        help="Default graph height in pixels",
    )
    parser.add_argument(
        "--xml-declaration",
        dest="xml_declaration",
        action="store_true",
        help="Prefix written SVG files with an XML declaration (default).",
    )
    parser.add_argument(
        "--no-xml-declaration",
        dest="xml_declaration",
        action="store_false",
        help="Write bare <svg> documents suitable for inline embedding.",
    )
    parser.set_defaults(xml_declaration=None)
    parser.add_argument(
        "--log-level",
        default=_DEFAULT_LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (logs go to stderr)",
    )
    parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "sse", "streamable-http"],
        help="MCP transport",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _configure_server(
        workdir=Path(args.workdir),
        width=args.width,
        height=args.height,
        xml_declaration=args.xml_declaration,
    )
    mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()
