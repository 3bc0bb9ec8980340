"""Renderer-agnostic scene description.

A ``SceneDescription`` is the fully resolved output of a template: an ordered
tuple of primitive nodes positioned in canvas pixels (the true export size, not
the preview size). Both render backends paint the same tuple; the interactive
preview only scales the painter. Every node is a frozen dataclass so two scenes
built from identical inputs compare equal.

Text nodes carry pre-wrapped lines (``\\n`` separated); renderers draw each line
as given and only elide a line that still overflows with the actual font.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Union

Color = Tuple[int, int, int, int]


def rgba(rgb: Tuple[int, ...], alpha: int = 255) -> Color:
    return (rgb[0], rgb[1], rgb[2], alpha if len(rgb) == 3 else rgb[3])


@dataclass(frozen=True)
class RectNode:
    x: float
    y: float
    w: float
    h: float
    fill: Optional[Color] = None
    stroke: Optional[Color] = None
    stroke_width: float = 0.0
    radius: float = 0.0
    # (start, end) colours; "vertical" runs top->bottom, "diagonal" top-left->bottom-right
    gradient: Optional[Tuple[Color, Color]] = None
    gradient_direction: str = "vertical"
    opacity: float = 1.0


@dataclass(frozen=True)
class EllipseNode:
    x: float
    y: float
    w: float
    h: float
    fill: Optional[Color] = None
    stroke: Optional[Color] = None
    stroke_width: float = 0.0
    opacity: float = 1.0


@dataclass(frozen=True)
class LineNode:
    x1: float
    y1: float
    x2: float
    y2: float
    color: Color
    width: float = 1.0
    dashed: bool = False


@dataclass(frozen=True)
class TextNode:
    x: float
    y: float
    w: float
    h: float
    text: str
    size: float
    color: Color
    weight: int = 400
    align: str = "center"  # left | center | right
    line_height: float = 1.15
    letter_spacing: float = 0.0  # percent of font size
    mono: bool = False
    italic: bool = False
    role: str = "body"
    opacity: float = 1.0

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")


@dataclass(frozen=True)
class ImageNode:
    x: float
    y: float
    w: float
    h: float
    asset: str  # key into SceneDescription.assets
    shape: str = "rect"  # rect | rounded | circle
    radius: float = 0.0
    stroke: Optional[Color] = None
    stroke_width: float = 0.0
    opacity: float = 1.0


@dataclass(frozen=True)
class PlaceholderNode:
    """Stand-in for an absent avatar / cover image."""

    x: float
    y: float
    w: float
    h: float
    mark: str
    fill: Color
    color: Color
    shape: str = "rect"
    radius: float = 0.0
    stroke: Optional[Color] = None
    stroke_width: float = 0.0
    opacity: float = 1.0


SceneNode = Union[RectNode, EllipseNode, LineNode, TextNode, ImageNode, PlaceholderNode]


def scale_node(node: SceneNode, s: float, ox: float, oy: float) -> SceneNode:
    """Scale ``node`` by ``s`` about the point (ox, oy), sizes included."""

    def sx(v: float) -> float:
        return ox + (v - ox) * s

    def sy(v: float) -> float:
        return oy + (v - oy) * s

    if isinstance(node, LineNode):
        return replace(node, x1=sx(node.x1), y1=sy(node.y1), x2=sx(node.x2), y2=sy(node.y2),
                       width=node.width * s)
    changes = dict(x=sx(node.x), y=sy(node.y), w=node.w * s, h=node.h * s)
    if isinstance(node, TextNode):
        changes["size"] = node.size * s
    else:
        changes["stroke_width"] = node.stroke_width * s
        if not isinstance(node, EllipseNode):
            changes["radius"] = node.radius * s
    return replace(node, **changes)


@dataclass(frozen=True)
class SceneDescription:
    width: int
    height: int
    background: Color
    nodes: Tuple[SceneNode, ...]
    template: str
    aspect_ratio: str
    # (asset key, file path) pairs for every ImageNode in ``nodes``
    assets: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def asset_paths(self) -> dict[str, str]:
        return dict(self.assets)

    def texts(self) -> list[str]:
        return [n.text for n in self.nodes if isinstance(n, TextNode)]

    def nodes_of(self, kind: type) -> list:
        return [n for n in self.nodes if isinstance(n, kind)]

    def text_by_role(self, role: str) -> list[TextNode]:
        return [n for n in self.nodes if isinstance(n, TextNode) and n.role == role]


__all__ = [
    "Color",
    "rgba",
    "RectNode",
    "EllipseNode",
    "LineNode",
    "TextNode",
    "ImageNode",
    "PlaceholderNode",
    "SceneNode",
    "scale_node",
    "SceneDescription",
]
