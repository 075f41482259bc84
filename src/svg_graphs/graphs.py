from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .layout import AxisLayout, ColorCycle, axis_ratio, compute_bounds, draw_axis
from .models import DataSet, InvalidInputError, Label
from .svg import Canvas, create_document


_LOGGER = logging.getLogger(__name__)

BACKGROUND_STYLE = {"fill": "#eee", "stroke": "#ddd", "stroke-width": 2}
MAX_BAR_WIDTH = 20
MARKER_RADIUS = 4
MARKER_COLOR = "#2BA6CB"
LINE_WIDTH = 2


class Graph:
    kind = "graph"

    def __init__(
        self,
        width: int,
        height: int,
        data: Mapping[Label, Any] | Sequence[Any] | DataSet,
        palette: Sequence[str] | None = None,
    ) -> None:
        self.width = width
        self.height = height
        self.data = DataSet.from_mapping(data)
        self.bounds = compute_bounds(width, height)
        self.axis_ratio = axis_ratio(self.data.max_value, self.bounds.height)
        self.colors = ColorCycle(palette) if palette is not None else ColorCycle()
        self.canvas: Canvas = create_document(width, height)
        self.axis: AxisLayout | None = None
        _LOGGER.debug(
            "%s layout width=%s height=%s values=%s bounds=%s ratio=%.6g",
            self.kind,
            width,
            height,
            len(self.data),
            self.bounds.as_dict(),
            self.axis_ratio,
        )

    @property
    def section_width(self) -> float:
        return self.bounds.width / len(self.data)

    def next_color(self) -> str:
        return self.colors.next_color()

    def _draw_background(self) -> None:
        self.canvas.add_rect(0, 0, self.width, self.height, BACKGROUND_STYLE)

    def _draw_axis(self) -> None:
        labels = self.data.labels if self.data.is_labeled else None
        self.axis = draw_axis(self.canvas, self.bounds, self.data.max_value, labels)

    def render(self, xml_declaration: bool = False) -> str:
        return self.canvas.render(xml_declaration=xml_declaration)

    def __str__(self) -> str:
        return self.render()

    def summary(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "width": self.width,
            "height": self.height,
            "points": len(self.data),
            "labeled": self.data.is_labeled,
            "max_value": self.data.max_value,
            "axis_ratio": self.axis_ratio,
            "tick": self.axis.tick if self.axis else None,
            "bounds": self.bounds.as_dict(),
        }


class BarGraph(Graph):
    kind = "bar"

    def __init__(
        self,
        width: int,
        height: int,
        data: Mapping[Label, Any] | Sequence[Any] | DataSet,
        palette: Sequence[str] | None = None,
        color_per_bar: bool = False,
    ) -> None:
        super().__init__(width, height, data, palette=palette)
        self.color_per_bar = color_per_bar
        self.bar_colors: list[str] = []
        self._draw_background()
        self._draw_axis()
        self._draw_bars()

    def _draw_bars(self) -> None:
        section_width = self.section_width
        bar_width = min(MAX_BAR_WIDTH, section_width)
        if bar_width - 1 < 0:
            raise InvalidInputError(
                f"{len(self.data)} bars do not fit in a plot area {self.bounds.width}px wide"
            )
        bar_padding = (section_width - bar_width) / 2

        if self.color_per_bar:
            bars = self.canvas.add_group(0, 0)
        else:
            series_color = self.next_color()
            self.bar_colors.append(series_color)
            bars = self.canvas.add_group(0, 0, {"fill": series_color})

        for idx, value in enumerate(self.data.values):
            bar_height = value * self.axis_ratio
            attrs = None
            if self.color_per_bar:
                color = self.next_color()
                self.bar_colors.append(color)
                attrs = {"fill": color}
            bars.add_rect(
                self.bounds.left + idx * section_width + bar_padding,
                self.bounds.bottom - bar_height,
                bar_width - 1,
                bar_height,
                attrs,
            )

    def summary(self) -> dict[str, Any]:
        payload = super().summary()
        payload["colors"] = list(self.bar_colors)
        payload["color_per_bar"] = self.color_per_bar
        return payload


class LineGraph(Graph):
    kind = "line"

    def __init__(
        self,
        width: int,
        height: int,
        data: Mapping[Label, Any] | Sequence[Any] | DataSet,
        palette: Sequence[str] | None = None,
    ) -> None:
        super().__init__(width, height, data, palette=palette)
        self.line_color: str | None = None
        self._draw_background()
        self._draw_axis()
        self._draw_line()

    def _draw_line(self) -> None:
        section_width = self.section_width
        half_section = section_width / 2
        self.line_color = self.next_color()
        line = self.canvas.add_polyline(
            {"fill": "none", "stroke": self.line_color, "stroke-width": LINE_WIDTH}
        )
        for idx, value in enumerate(self.data.values):
            x = self.bounds.left + half_section + idx * section_width
            y = self.bounds.bottom - self.axis_ratio * value
            line.add_point(x, y)
            self.canvas.add_circle(x, y, MARKER_RADIUS, {"fill": MARKER_COLOR})

    def summary(self) -> dict[str, Any]:
        payload = super().summary()
        payload["colors"] = [self.line_color] if self.line_color else []
        return payload


GRAPH_KINDS: dict[str, type[Graph]] = {
    BarGraph.kind: BarGraph,
    LineGraph.kind: LineGraph,
}


def build_graph(
    kind: str,
    width: int,
    height: int,
    data: Mapping[Label, Any] | Sequence[Any] | DataSet,
    **options: Any,
) -> Graph:
    normalized = kind.strip().lower()
    graph_cls = GRAPH_KINDS.get(normalized)
    if graph_cls is None:
        raise InvalidInputError(f"kind must be one of: {', '.join(sorted(GRAPH_KINDS))}")
    return graph_cls(width, height, data, **options)
