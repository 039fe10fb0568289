"""
Animated tile sequence validator

=============================================================================
HOW GODOT LAYS OUT AN ANIMATION
=============================================================================

Tiled lets an animation use any tiles in any order. Godot doesn't: the
frames of an animated tile must sit in the atlas as a regular grid that
starts at the tile itself, described by

    animation_columns     frames per row
    animation_separation  tiles skipped between frames (x) and rows (y)

    atlas, 8 columns:           frames [10, 11, 12]
    +--+--+--+--+--+--+--+--+
    | 0| 1| 2| 3| 4| 5| 6| 7|   columns = 3, separation = (0, 0)
    +--+--+--+--+--+--+--+--+
    | 8| 9|10|11|12|13|14|15|
    +--+--+--+--+--+--+--+--+

Frame i is drawn from the cell

    tile + (i % columns * (1 + separation.x), i // columns * (1 + separation.y))

=============================================================================
RULES
=============================================================================

The validator walks the frames in order and rejects the sequence when:

    - the first frame isn't the animated tile itself
    - a frame id isn't strictly greater than the previous one
    - the column step inside a row changes
    - the row step between rows changes, or a new row starts at a
      different column than the previous new row did
    - the first new row doesn't start under the tile itself
    - a row holds more frames than the first row
    - the frames don't land on the cells of the grid above (a short row
      in the middle of the sequence)

Single-column animations only need a constant row step: Godot plays the
cells straight below the tile, whatever column Tiled's frames use.

    atlas, 8 columns:           frames [10, 19]
    +--+--+--+--+--+--+--+--+
    | 8| 9|10|11|12|13|14|15|   columns = 1, separation = (0, 0)
    +--+--+--+--+--+--+--+--+   Godot plays 10, 18
    |16|17|18|19|20|21|22|23|
    +--+--+--+--+--+--+--+--+

A rejected tile is exported static, with a warning.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..diagnostics import ExportLog
from ..model.tile_data import AnimatedTileFrame
from ..model.values import Vector2i


class InvalidAnimation(ValueError):
    pass


@dataclass
class AnimationLayout:
    columns: int
    separation: Vector2i
    speed: float = 1.0
    frames: List[AnimatedTileFrame] = field(default_factory=list)

    def frame_tiles(self, tile_id: int, atlas_columns: int) -> List[int]:
        """Tile ids of the atlas cells Godot draws the frames from."""
        row, col = divmod(tile_id, atlas_columns)
        tiles = []
        for index in range(len(self.frames)):
            x = col + (index % self.columns) * (1 + self.separation.x)
            y = row + (index // self.columns) * (1 + self.separation.y)
            tiles.append(y * atlas_columns + x)
        return tiles


class AnimationValidator:
    """Accepts frame ids one at a time, raising InvalidAnimation on the first bad one."""

    def __init__(self, tile_id: int, atlas_columns: int):
        if atlas_columns <= 0:
            raise InvalidAnimation("tileset atlas has no columns")
        self.tile_id = tile_id
        self.atlas_columns = atlas_columns
        self.frame_ids: List[int] = []
        self.columns = 0
        self.row_frames = 0
        self.column_step: Optional[int] = None
        self.row_step: Optional[int] = None
        self.row_start: Optional[int] = None

    def add_frame(self, frame_id: int):
        if not self.frame_ids:
            if frame_id != self.tile_id:
                raise InvalidAnimation(
                    f"first frame is tile {frame_id}, expected tile {self.tile_id}"
                )
            self.frame_ids.append(frame_id)
            self.columns = 1
            self.row_frames = 1
            return

        previous = self.frame_ids[-1]
        if frame_id <= previous:
            raise InvalidAnimation(f"frame {frame_id} after frame {previous} is not ascending")

        prev_row, prev_col = divmod(previous, self.atlas_columns)
        row, col = divmod(frame_id, self.atlas_columns)

        if row == prev_row:
            step = col - prev_col
            if self.column_step is None:
                self.column_step = step
            elif step != self.column_step:
                raise InvalidAnimation(
                    f"column step {step} at frame {frame_id}, expected {self.column_step}"
                )
            self.row_frames += 1
            if self.row_step is None:
                self.columns += 1
            elif self.row_frames > self.columns:
                raise InvalidAnimation(
                    f"row of frame {frame_id} holds more than {self.columns} frames"
                )
        else:
            step = row - prev_row
            if self.row_step is None:
                tile_col = self.tile_id % self.atlas_columns
                if self.columns > 1 and col != tile_col:
                    raise InvalidAnimation(
                        f"row starting at column {col} at frame {frame_id}, "
                        f"expected column {tile_col}"
                    )
                self.row_step = step
                self.row_start = col
            elif step != self.row_step:
                raise InvalidAnimation(
                    f"row step {step} at frame {frame_id}, expected {self.row_step}"
                )
            elif col != self.row_start:
                raise InvalidAnimation(
                    f"row starting at column {col} at frame {frame_id}, "
                    f"expected column {self.row_start}"
                )
            self.row_frames = 1

        self.frame_ids.append(frame_id)

    def layout(self, speed: float = 1.0, frame_duration: float = 1.0) -> AnimationLayout:
        separation = Vector2i(
            (self.column_step or 1) - 1,
            (self.row_step or 1) - 1,
        )
        return AnimationLayout(
            columns=self.columns,
            separation=separation,
            speed=speed,
            frames=[AnimatedTileFrame(frame_duration) for _ in self.frame_ids],
        )

    def finish(self, speed: float = 1.0, frame_duration: float = 1.0) -> AnimationLayout:
        """Layout of the frames added so far, checked against Godot's grid."""
        layout = self.layout(speed, frame_duration)
        if self.columns > 1:
            expected = layout.frame_tiles(self.tile_id, self.atlas_columns)
            for frame_id, cell in zip(self.frame_ids, expected):
                if frame_id != cell:
                    raise InvalidAnimation(
                        f"frame {frame_id} is off the animation grid, expected tile {cell}"
                    )
        return layout


def animation_speed(first_duration_ms) -> float:
    """Godot animation speed for a Tiled frame duration (1 frame per second = 1.0)."""
    if not first_duration_ms or first_duration_ms <= 0:
        return 1.0
    return round(1000 / first_duration_ms, 6)


def validate_animation(tile_id: int, frame_ids: Sequence[int], atlas_columns: int,
                       log: Optional[ExportLog] = None, speed: float = 1.0,
                       frame_duration: float = 1.0) -> Optional[AnimationLayout]:
    """
    Layout of a valid animation, or None when the tile has to stay static.

    Sequences of fewer than two frames aren't animations.
    """
    if len(frame_ids) < 2:
        return None

    try:
        validator = AnimationValidator(tile_id, atlas_columns)
        for frame_id in frame_ids:
            validator.add_frame(frame_id)
        return validator.finish(speed, frame_duration)
    except InvalidAnimation as e:
        if log is not None:
            log.warn(f"Animation of tile {tile_id} can't be exported ({e}), tile exported static")
        return None
