"""
Tile atlas calculator

=============================================================================
ATLAS GRID
=============================================================================

A tileset image is a grid of tiles with a margin around the edge and
spacing between tiles. Tile ids count left to right, top to bottom:

    margin=1, spacing=2, tile 16x16, image 88 px wide

    columns = (88 + 2 - 1) // (16 + 2) = 4

    tile 5  ->  row 1, column 1
            ->  x = 1*16 + 1 + 1*2 = 19
                y = 1*16 + 1 + 1*2 = 19

Partial tiles at the right edge don't count, same as in Tiled.

=============================================================================
CELL IDS
=============================================================================

Painted cells are keyed by one integer:

    cell_id = row * 65536 + x        row = y for y >= 0, y + 1 otherwise

Flip flags are added on the row component (flag * 65536), above the bits
a row can use (rows < 4096). Maps are finite, so y is never negative and
keys never collide. The map exporter keys each layer's cells this way and
writes them in key order.

=============================================================================
FLIP FLAGS
=============================================================================

Godot 4 stores a flipped tile as an alternative id with transform bits:

    FLIP_H     1 << 12
    FLIP_V     1 << 13
    TRANSPOSE  1 << 14

Tiled's diagonal flip is Godot's transpose.

=============================================================================
"""

from typing import Iterable, Optional, Tuple

import numpy as np

from ..model.values import Rect2, Vector2i

CELL_OFFSET = 65536

FLIP_H = 1 << 12
FLIP_V = 1 << 13
TRANSPOSE = 1 << 14

TILE_MAP_DATA_FORMAT = 0


def column_count(tileset, image_width: Optional[int] = None) -> int:
    """Number of whole tiles per atlas row."""
    if image_width is None:
        image_width = tileset.image.width if tileset.image and tileset.image.width else 0
    if not image_width:
        return tileset.columns
    stride = tileset.tilewidth + tileset.spacing
    if stride <= 0:
        return 0
    return (image_width + tileset.spacing - tileset.margin) // stride


def atlas_coords(tile_id: int, columns: int) -> Vector2i:
    """Column/row of a tile within its atlas."""
    if columns <= 0:
        raise ValueError("Tileset atlas has no columns")
    return Vector2i(tile_id % columns, tile_id // columns)


def pixel_offset(tileset, tile_id: int, columns: Optional[int] = None) -> Tuple[int, int]:
    """Top-left pixel of a tile within the tileset image."""
    if columns is None:
        columns = column_count(tileset)
    coords = atlas_coords(tile_id, columns)
    x = coords.x * tileset.tilewidth + tileset.margin + coords.x * tileset.spacing
    y = coords.y * tileset.tileheight + tileset.margin + coords.y * tileset.spacing
    return x, y


def region_rect(tileset, tile_id: int, columns: Optional[int] = None) -> Rect2:
    x, y = pixel_offset(tileset, tile_id, columns)
    return Rect2(x, y, tileset.tilewidth, tileset.tileheight)


def cell_id(x: int, y: int, flags: int = 0) -> int:
    row = y if y >= 0 else y + 1
    return row * CELL_OFFSET + x + flags * CELL_OFFSET


def alternative_id(flip_h: bool = False, flip_v: bool = False, flip_d: bool = False) -> int:
    """Godot alternative tile id for a Tiled flip combination."""
    alt = 0
    if flip_h:
        alt |= FLIP_H
    if flip_v:
        alt |= FLIP_V
    if flip_d:
        alt |= TRANSPOSE
    return alt


def pack_tile_map_data(cells: Iterable[Tuple[int, int, int, int, int, int]]) -> bytes:
    """
    Encode painted cells as a TileMapLayer 'tile_map_data' blob.

    Layout (little endian uint16): format header, then per cell
    x, y, source id, atlas x, atlas y, alternative id. Negative
    coordinates wrap to their two's complement, as Godot reads int16.
    """
    rows = np.array(list(cells), dtype=np.int64).reshape(-1, 6)
    body = (rows & 0xFFFF).astype('<u2')
    header = np.array([TILE_MAP_DATA_FORMAT], dtype='<u2')
    return np.concatenate([header, body.ravel()]).tobytes()
