from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .models import AttributeEncodingError, InvalidInputError


SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XML_DECLARATION = '<?xml version="1.0"?>'

AttrValue = str | int | float

_ATTR_NAME_RE = re.compile(r"^[A-Za-z_:][-A-Za-z0-9_:.]*$")
_ILLEGAL_XML_CHARS_RE = re.compile("[\\x00-\\x08\\x0b\\x0c\\x0e-\\x1f\\ufffe\\uffff]")


def _svg_escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def format_number(value: int | float) -> str:
    if isinstance(value, int):
        return str(value)
    if value.is_integer():
        return str(int(value))
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _check_text(text: str, *, what: str) -> str:
    if _ILLEGAL_XML_CHARS_RE.search(text):
        raise AttributeEncodingError(f"{what} contains characters that cannot be encoded in SVG")
    return text


def _check_value(name: str, value: Any) -> AttrValue:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise AttributeEncodingError(
            f"Attribute '{name}' must be a string or number, got {type(value).__name__}"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise AttributeEncodingError(f"Attribute '{name}' must be finite")
    if isinstance(value, str):
        _check_text(value, what=f"Attribute '{name}'")
    return value


class TokenList:
    """Space-separated attribute value that grows one token at a time.

    The joined text is cached and only rebuilt on the first read after an append.
    """

    __slots__ = ("_tokens", "_joined")

    def __init__(self) -> None:
        self._tokens: list[str] = []
        self._joined: str | None = ""

    def append(self, token: str) -> None:
        self._tokens.append(token)
        self._joined = None

    def __len__(self) -> int:
        return len(self._tokens)

    def __str__(self) -> str:
        if self._joined is None:
            self._joined = " ".join(self._tokens)
        return self._joined


def _attr_text(value: AttrValue | TokenList) -> str:
    if isinstance(value, TokenList):
        return str(value)
    return value if isinstance(value, str) else format_number(value)


class AttributeMap(MutableMapping[str, AttrValue]):
    """Insertion-ordered attribute mapping that only accepts SVG-safe scalars.

    A ``TokenList`` may be bound as a value; reads return its joined text.
    """

    __slots__ = ("_items",)

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._items: dict[str, AttrValue | TokenList] = {}
        if initial:
            self.update(initial)

    def __getitem__(self, name: str) -> AttrValue:
        value = self._items[name]
        return str(value) if isinstance(value, TokenList) else value

    def __setitem__(self, name: str, value: Any) -> None:
        if not isinstance(name, str) or not _ATTR_NAME_RE.match(name):
            raise AttributeEncodingError(f"Invalid attribute name: {name!r}")
        if isinstance(value, TokenList):
            self._items[name] = value
        else:
            self._items[name] = _check_value(name, value)

    def __delitem__(self, name: str) -> None:
        del self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"AttributeMap({self._items!r})"

    def serialize(self) -> str:
        parts = []
        for name, value in self._items.items():
            parts.append(f'{name}="{_svg_escape(_attr_text(value))}"')
        return " ".join(parts)


@dataclass(slots=True)
class SvgNode:
    tag: str
    attributes: AttributeMap = field(default_factory=AttributeMap)
    children: list[SvgNode] = field(default_factory=list)
    text: str | None = None

    def append(self, tag: str, attrs: Mapping[str, Any] | None = None, text: str | None = None) -> SvgNode:
        if text is not None:
            _check_text(text, what=f"Text of <{tag}>")
        child = SvgNode(tag=tag, attributes=AttributeMap(attrs), text=text)
        self.children.append(child)
        return child

    def iter(self, tag: str | None = None) -> Iterator[SvgNode]:
        if tag is None or self.tag == tag:
            yield self
        for child in self.children:
            yield from child.iter(tag)


def render_node(node: SvgNode) -> str:
    attrs = node.attributes.serialize()
    opening = f"<{node.tag} {attrs}" if attrs else f"<{node.tag}"
    if not node.children and node.text is None:
        return opening + "/>"
    parts = [opening, ">"]
    if node.text is not None:
        parts.append(_svg_escape(node.text))
    parts.extend(render_node(child) for child in node.children)
    parts.append(f"</{node.tag}>")
    return "".join(parts)


def _merge(attrs: Mapping[str, Any] | None, positional: dict[str, Any]) -> AttributeMap:
    merged = AttributeMap(attrs)
    merged.update(positional)
    return merged


@dataclass(slots=True)
class PenState:
    last_point: tuple[float, float] | None = None
    tokens: TokenList = field(default_factory=TokenList)


class Polyline:
    def __init__(self, node: SvgNode) -> None:
        self.node = node
        self.state = PenState()
        self.node.attributes["points"] = self.state.tokens

    def _push(self, x: float, y: float) -> None:
        self.state.last_point = (x, y)
        self.state.tokens.append(f"{format_number(x)},{format_number(y)}")

    def add_point(self, x: float, y: float) -> Polyline:
        self._push(x, y)
        return self

    def add_rel_point(self, dx: float, dy: float) -> Polyline:
        last_x, last_y = self.state.last_point or (0, 0)
        self._push(last_x + dx, last_y + dy)
        return self


class Path:
    def __init__(self, node: SvgNode, commands: str | None = None) -> None:
        self.node = node
        self.state = PenState()
        if commands:
            self.state.tokens.append(_check_text(commands.strip(), what="Path commands"))
        self.node.attributes["d"] = self.state.tokens

    def _command(self, relative_code: str, relative: bool, *args: str) -> Path:
        code = relative_code if relative else relative_code.upper()
        self.state.tokens.append(code + " ".join(args))
        return self

    def move_to(self, x: float, y: float, relative: bool = True) -> Path:
        return self._command("m", relative, f"{format_number(x)},{format_number(y)}")

    def line_to(self, x: float, y: float, relative: bool = True) -> Path:
        return self._command("l", relative, f"{format_number(x)},{format_number(y)}")

    def horizontal_line_to(self, x: float, relative: bool = True) -> Path:
        return self._command("h", relative, format_number(x))

    def vertical_line_to(self, y: float, relative: bool = True) -> Path:
        return self._command("v", relative, format_number(y))

    def arch_to(
        self,
        rx: float,
        ry: float,
        x_rotation: float,
        large_arc: bool,
        sweep: bool,
        x: float,
        y: float,
        relative: bool = True,
    ) -> Path:
        return self._command(
            "a",
            relative,
            f"{format_number(rx)},{format_number(ry)}",
            format_number(x_rotation),
            f"{int(bool(large_arc))},{int(bool(sweep))}",
            f"{format_number(x)},{format_number(y)}",
        )

    def close_path(self) -> Path:
        self.state.tokens.append("z")
        return self


class Canvas:
    """Drawing surface bound to one node of the tree.

    The root document and every ``<g>`` group are both plain canvases, so
    groups nest to any depth with the same set of drawing calls.
    """

    def __init__(self, node: SvgNode) -> None:
        self.node = node

    def add_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        attrs: Mapping[str, Any] | None = None,
    ) -> SvgNode:
        merged = _merge(attrs, {"x": x, "y": y, "width": width, "height": height})
        return self.node.append("rect", merged)

    def add_circle(self, cx: float, cy: float, r: float, attrs: Mapping[str, Any] | None = None) -> SvgNode:
        return self.node.append("circle", _merge(attrs, {"cx": cx, "cy": cy, "r": r}))

    def add_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        attrs: Mapping[str, Any] | None = None,
    ) -> SvgNode:
        return self.node.append("line", _merge(attrs, {"x1": x1, "y1": y1, "x2": x2, "y2": y2}))

    def add_text(
        self,
        value: str | int | float,
        x: float,
        y: float,
        attrs: Mapping[str, Any] | None = None,
    ) -> SvgNode:
        text = value if isinstance(value, str) else format_number(value)
        return self.node.append("text", _merge(attrs, {"x": x, "y": y}), text=text)

    def add_polyline(
        self,
        attrs: Mapping[str, Any] | None = None,
        points: Sequence[float] | None = None,
    ) -> Polyline:
        if points is not None and len(points) % 2 != 0:
            raise InvalidInputError("Incorrect number of points provided: expected x,y pairs")
        polyline = Polyline(self.node.append("polyline", attrs))
        if points:
            for idx in range(0, len(points), 2):
                polyline.add_point(points[idx], points[idx + 1])
        return polyline

    def add_path(self, attrs: Mapping[str, Any] | None = None, commands: str | None = None) -> Path:
        return Path(self.node.append("path", attrs), commands=commands)

    def add_group(self, x: float = 0, y: float = 0, attrs: Mapping[str, Any] | None = None) -> Canvas:
        merged = AttributeMap()
        caller = dict(attrs or {})
        if x != 0 or y != 0:
            translate = f"translate({format_number(x)},{format_number(y)})"
            extra = caller.pop("transform", None)
            merged["transform"] = f"{translate} {extra}" if extra else translate
        merged.update(caller)
        return Canvas(self.node.append("g", merged))

    def render(self, xml_declaration: bool = False) -> str:
        body = render_node(self.node)
        if xml_declaration:
            return f"{XML_DECLARATION}\n{body}"
        return body

    def __str__(self) -> str:
        return self.render()


def create_document(width: int = 0, height: int = 0) -> Canvas:
    root = SvgNode(tag="svg")
    root.attributes["xmlns"] = SVG_NAMESPACE
    if width > 0:
        root.attributes["width"] = width
    if height > 0:
        root.attributes["height"] = height
    return Canvas(root)
