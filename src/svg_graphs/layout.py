from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from .models import InvalidInputError, Label
from .svg import Canvas


PALETTE: tuple[str, ...] = (
    "#2BA6CB",  # light blue
    "#eeaa50",  # orange
    "#d0ea4e",  # green
    "#ca43ca",  # purple
    "#4c93c9",  # blue
    "#ee5050",  # red
    "#eed350",  # yellow
    "#7154ce",  # dark blue
    "#49d949",  # dark green
    "#da4998",  # pink
)

OUTER_MARGIN = 10
AXIS_LABEL_MARGIN = 20
TOP_MARGIN = 10
BOTTOM_LABEL_MARGIN = 10
CATEGORY_LABEL_OFFSET = 15

AXIS_STYLE = {"stroke": "#999", "stroke-width": 1, "fill": "none"}
TICK_STYLE = {"stroke": "#bbb", "stroke-width": 1}
Y_AXIS_TEXT_STYLE = {"text-anchor": "end", "font-size": 10}
CATEGORY_LABEL_STYLE = {"text-anchor": "middle", "font-size": 10}


@dataclass(slots=True, frozen=True)
class Bounds:
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def as_dict(self) -> dict[str, float]:
        return {
            "left": self.left,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
            "width": self.width,
            "height": self.height,
        }


def compute_bounds(width: int, height: int) -> Bounds:
    if width <= 0 or height <= 0:
        raise InvalidInputError("width and height must be > 0")
    inner_width = width - OUTER_MARGIN * 2
    inner_height = height - OUTER_MARGIN * 2
    bounds = Bounds(
        left=OUTER_MARGIN + AXIS_LABEL_MARGIN,
        top=OUTER_MARGIN + TOP_MARGIN,
        right=inner_width + OUTER_MARGIN,
        bottom=inner_height + OUTER_MARGIN - BOTTOM_LABEL_MARGIN,
    )
    if bounds.width <= 0 or bounds.height <= 0:
        raise InvalidInputError(f"{width}x{height} leaves no room for the plot area")
    return bounds


def choose_tick(max_value: float) -> int:
    # Largest power of ten not above the value, never below 1.
    n = abs(max_value)
    tick = 1
    while tick * 10 <= n:
        tick *= 10
    return tick


def axis_ratio(max_value: float, bounds_height: float) -> float:
    if max_value <= 0:
        raise InvalidInputError("maximum data value must be > 0 to scale the axis")
    return bounds_height / max_value


class ColorCycle:
    def __init__(self, palette: Sequence[str] = PALETTE) -> None:
        if not palette:
            raise InvalidInputError("palette must contain at least one colour")
        self.palette = tuple(palette)
        self.cursor = -1

    def next_color(self) -> str:
        self.cursor = (self.cursor + 1) % len(self.palette)
        return self.palette[self.cursor]

    def reset(self) -> None:
        self.cursor = -1


@dataclass(slots=True)
class AxisLayout:
    axis: Canvas
    labels: Canvas | None
    ratio: float
    tick: int
    ticks: list[int]


def tick_values(max_value: float) -> list[int]:
    tick = choose_tick(max_value)
    ticks = math.floor(max_value / tick)
    return [tick * idx for idx in range(1, ticks)]


def draw_axis(
    canvas: Canvas,
    bounds: Bounds,
    max_value: float,
    labels: Sequence[Label] | None = None,
) -> AxisLayout:
    ratio = axis_ratio(max_value, bounds.height)
    axis_g = canvas.add_group(0, 0)

    axis = axis_g.add_polyline(AXIS_STYLE)
    axis.add_point(bounds.left + 0.5, bounds.top)
    axis.add_point(bounds.left + 0.5, bounds.bottom + 0.5)
    axis.add_point(bounds.right, bounds.bottom + 0.5)

    ticks = tick_values(max_value)
    for value in ticks:
        tick_line_y = bounds.bottom - (ratio * value) + 0.5
        axis_g.add_line(bounds.left, tick_line_y, bounds.right, tick_line_y, TICK_STYLE)
        axis_g.add_text(value, bounds.left - 5, tick_line_y + 5, Y_AXIS_TEXT_STYLE)

    axis_g.add_line(bounds.left, bounds.top + 0.5, bounds.right, bounds.top + 0.5, TICK_STYLE)

    axis_g.add_text("0", bounds.left - 5, bounds.bottom + 5, Y_AXIS_TEXT_STYLE)
    axis_g.add_text(max_value, bounds.left - 5, bounds.top + 5, Y_AXIS_TEXT_STYLE)

    label_g: Canvas | None = None
    if labels:
        section_width = bounds.width / len(labels)
        half_section = section_width / 2
        label_g = canvas.add_group(
            bounds.left + half_section,
            bounds.bottom + CATEGORY_LABEL_OFFSET,
            CATEGORY_LABEL_STYLE,
        )
        for idx, label in enumerate(labels):
            label_g.add_text(str(label), section_width * idx, 0)

    return AxisLayout(
        axis=axis_g,
        labels=label_g,
        ratio=ratio,
        tick=choose_tick(max_value),
        ticks=ticks,
    )
