"""
Value types carried through the export pipeline.

All of them are frozen dataclasses: they compare by value (which the
default-elision step relies on) and can't be changed once a node holds
them. Each one knows its own Godot literal via to_godot().
"""

import math
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

Number = Union[int, float]


def format_number(value: Number) -> str:
    """
    Render a number the way Godot writes it in text resources.

    Integral floats lose their fractional part (5.0 -> "5"), other floats
    use the shortest representation that round-trips.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    value = float(value)
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        return str(int(value))
    return repr(value)


@dataclass(frozen=True)
class Vector2:
    x: float = 0.0
    y: float = 0.0

    def to_godot(self) -> str:
        return f"Vector2({format_number(self.x)}, {format_number(self.y)})"


@dataclass(frozen=True)
class Vector2i:
    x: int = 0
    y: int = 0

    def to_godot(self) -> str:
        return f"Vector2i({int(self.x)}, {int(self.y)})"


@dataclass(frozen=True)
class Rect2:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def to_godot(self) -> str:
        parts = (self.x, self.y, self.width, self.height)
        return f"Rect2({', '.join(format_number(p) for p in parts)})"


@dataclass(frozen=True)
class Color:
    """RGBA color, channels in 0..1."""
    r: float = 1.0
    g: float = 1.0
    b: float = 1.0
    a: float = 1.0

    @classmethod
    def from_hex(cls, text: str, opacity: float = 1.0) -> 'Color':
        """
        Parse a Tiled color: "#RRGGBB" or "#AARRGGBB" (alpha first).

        'opacity' multiplies the alpha channel, which is how Tiled combines
        a layer's tint color with its opacity slider.
        """
        text = text.lstrip('#')
        if len(text) == 8:
            alpha, text = int(text[:2], 16) / 255, text[2:]
        elif len(text) == 6:
            alpha = 1.0
        else:
            raise ValueError(f"Invalid color: #{text}")
        r, g, b = (int(text[i:i + 2], 16) / 255 for i in (0, 2, 4))
        return cls(round(r, 6), round(g, 6), round(b, 6), round(alpha * opacity, 6))

    def to_godot(self) -> str:
        parts = (self.r, self.g, self.b, self.a)
        return f"Color({', '.join(format_number(p) for p in parts)})"


@dataclass(frozen=True)
class PackedVector2Array:
    """Polygon point list."""
    points: Tuple[Vector2, ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[float, float]]) -> 'PackedVector2Array':
        return cls(tuple(Vector2(x, y) for x, y in pairs))

    def to_godot(self) -> str:
        coords = []
        for point in self.points:
            coords.append(format_number(point.x))
            coords.append(format_number(point.y))
        return f"PackedVector2Array({', '.join(coords)})"


@dataclass(frozen=True)
class PackedByteArray:
    data: bytes = b""

    def to_godot(self) -> str:
        return f"PackedByteArray({', '.join(str(b) for b in self.data)})"


@dataclass(frozen=True)
class RawLiteral:
    """Text emitted exactly as written (values from godot:node: overrides)."""
    text: str

    def to_godot(self) -> str:
        return self.text
