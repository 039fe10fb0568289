"""
Godot property defaults

Godot leaves a property out of a .tscn/.tres file when it holds the class
default, and so does the exporter. A property is dropped when its value
equals the entry below for the node/resource type, falling back to the
common table.

Comparison is by value and type-aware: True is not 1 and 0 is not False,
but 0 and 0.0 are the same number.
"""

from typing import Any, Dict, Optional

from .values import Color, PackedVector2Array, Rect2, Vector2, Vector2i

COMMON_DEFAULTS: Dict[str, Any] = {
    # Node2D / CanvasItem
    "position": Vector2(0, 0),
    "rotation": 0,
    "scale": Vector2(1, 1),
    "skew": 0,
    "z_index": 0,
    "z_as_relative": True,
    "y_sort_enabled": False,
    "visible": True,
    "modulate": Color(1, 1, 1, 1),
    "self_modulate": Color(1, 1, 1, 1),
    # CollisionObject2D / Area2D
    "collision_layer": 1,
    "collision_mask": 1,
    "priority": 0,
    "monitoring": True,
    "monitorable": True,
    # CollisionShape2D / CollisionPolygon2D
    "disabled": False,
    "one_way_collision": False,
    "build_mode": 0,
    # Sprite2D
    "centered": True,
    "offset": Vector2(0, 0),
    "flip_h": False,
    "flip_v": False,
    "region_enabled": False,
    # TileMapLayer
    "enabled": True,
    "collision_enabled": True,
    "use_kinematic_bodies": False,
}

TYPE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "RectangleShape2D": {"size": Vector2(20, 20)},
    "CircleShape2D": {"radius": 10},
    "CollisionPolygon2D": {"polygon": PackedVector2Array()},
    "Sprite2D": {"region_rect": Rect2(0, 0, 0, 0)},
    "TileSetAtlasSource": {
        "resource_name": "",
        "margins": Vector2i(0, 0),
        "separation": Vector2i(0, 0),
        "texture_region_size": Vector2i(16, 16),
        "use_texture_padding": True,
    },
    "TileSet": {
        "tile_shape": 0,
        "tile_layout": 0,
        "tile_size": Vector2i(16, 16),
    },
}

_MISSING = object()


def default_for(type_name: Optional[str], key: str):
    """Default of 'key' on 'type_name', or a sentinel when Godot has none."""
    type_defaults = TYPE_DEFAULTS.get(type_name or "", {})
    if key in type_defaults:
        return type_defaults[key]
    return COMMON_DEFAULTS.get(key, _MISSING)


def same_value(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


def is_default(type_name: Optional[str], key: str, value: Any) -> bool:
    default = default_for(type_name, key)
    if default is _MISSING:
        return False
    return same_value(value, default)


def strip_defaults(type_name: Optional[str], properties: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of 'properties' without default-valued entries, order kept."""
    return {
        key: value for key, value in properties.items()
        if value is not None and not is_default(type_name, key, value)
    }
