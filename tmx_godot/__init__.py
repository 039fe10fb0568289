"""
TMX to Godot exporter

Converts Tiled maps (.tmx) into Godot 4 scenes (.tscn) and Tiled tilesets
(.tsx) into Godot TileSet resources (.tres).

Requirements:
    pip install numpy pillow zstandard
"""

from .config import ExportConfig
from .diagnostics import ExportLog
from .errors import ExportError, StructuralError, ResourceRegistrationError
from .export import MapExporter, TilesetExporter, export_map, export_tileset

__version__ = "1.0.0"
__all__ = [
    "ExportConfig",
    "ExportLog",
    "ExportError",
    "StructuralError",
    "ResourceRegistrationError",
    "MapExporter",
    "TilesetExporter",
    "export_map",
    "export_tileset",
]
