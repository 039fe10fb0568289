"""Tile atlas math, animation validation and tileset image probing"""

from .atlas import (
    CELL_OFFSET, FLIP_H, FLIP_V, TRANSPOSE,
    column_count, atlas_coords, pixel_offset, region_rect,
    cell_id, alternative_id, pack_tile_map_data
)
from .animation import (
    AnimationLayout, AnimationValidator, InvalidAnimation,
    animation_speed, validate_animation
)
from .image_probe import AtlasImage

__all__ = [
    "CELL_OFFSET",
    "FLIP_H",
    "FLIP_V",
    "TRANSPOSE",
    "column_count",
    "atlas_coords",
    "pixel_offset",
    "region_rect",
    "cell_id",
    "alternative_id",
    "pack_tile_map_data",
    "AnimationLayout",
    "AnimationValidator",
    "InvalidAnimation",
    "animation_speed",
    "validate_animation",
    "AtlasImage",
]
