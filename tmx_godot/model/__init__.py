"""Output model: value types, resources, properties and the node tree"""

from .values import (
    Vector2, Vector2i, Rect2, Color,
    PackedVector2Array, PackedByteArray, RawLiteral
)
from .resources import (
    ExternalResourceType, SubResourceType,
    ExternalResource, SubResource, ResourceRegistry
)
from .properties import PropertyBag, PropertyResolver, ResourcePath
from .node import Node, NodeTree
from .tile_data import TileData, PhysicsData, Polygon, CustomData, AnimatedTileFrame

__all__ = [
    "Vector2",
    "Vector2i",
    "Rect2",
    "Color",
    "PackedVector2Array",
    "PackedByteArray",
    "RawLiteral",
    "ExternalResourceType",
    "SubResourceType",
    "ExternalResource",
    "SubResource",
    "ResourceRegistry",
    "PropertyBag",
    "PropertyResolver",
    "ResourcePath",
    "Node",
    "NodeTree",
    "TileData",
    "PhysicsData",
    "Polygon",
    "CustomData",
    "AnimatedTileFrame",
]
