"""
Tileset image probing

The exporter never draws anything, but it does need two things from the
tileset image: its size (older TSX files leave width/height out) and
whether a tile's pixels are all transparent, so blank atlas cells can be
left out of the TileSet.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image


class AtlasImage:
    """Alpha channel of a tileset image, loaded once."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        # Load image and ensure RGBA format for transparency
        image = Image.open(str(self.path)).convert('RGBA')
        self.width = image.width
        self.height = image.height
        self.alpha = np.asarray(image)[:, :, 3]

    @classmethod
    def open(cls, path: Union[str, Path], log=None) -> Optional['AtlasImage']:
        """Load 'path', or warn and return None if it can't be read."""
        try:
            return cls(path)
        except (OSError, ValueError) as e:
            if log is not None:
                log.warn(f"Could not load {path}: {e}")
            return None

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def is_blank(self, x: int, y: int, width: int, height: int) -> bool:
        """True when every pixel of the region is fully transparent."""
        region = self.alpha[y:y + height, x:x + width]
        return not np.any(region)
