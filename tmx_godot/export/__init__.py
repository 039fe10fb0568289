"""Map and tileset exporters"""

from .map_exporter import MapExporter, export_map
from .tileset_exporter import TilesetExporter, export_tileset

__all__ = ["MapExporter", "export_map", "TilesetExporter", "export_tileset"]
