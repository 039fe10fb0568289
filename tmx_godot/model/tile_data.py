"""Per-tile data of a TileSetAtlasSource."""

from dataclasses import dataclass, field
from typing import Any, List

from .values import PackedVector2Array, Vector2, Vector2i


@dataclass
class Polygon:
    points: PackedVector2Array
    one_way: bool = False


@dataclass
class PhysicsData:
    """Collision of one tile on one physics layer (id = layer index)."""
    id: int = 0
    linear_velocity: Vector2 = Vector2(0, 0)
    angular_velocity: float = 0
    polygons: List[Polygon] = field(default_factory=list)


@dataclass
class CustomData:
    layer: int          # index into the tileset's custom data layers
    value: Any


@dataclass
class AnimatedTileFrame:
    duration: float = 1.0


@dataclass
class TileData:
    position: Vector2i
    physics: List[PhysicsData] = field(default_factory=list)
    custom_data: List[CustomData] = field(default_factory=list)
    is_animated: bool = False
    columns: int = 0
    separation: Vector2i = Vector2i(0, 0)
    speed: float = 1.0
    frames: List[AnimatedTileFrame] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.position.x}:{self.position.y}"
