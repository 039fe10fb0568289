"""
Tiled tileset -> Godot TileSet resource (.tres)

=============================================================================
OUTPUT
=============================================================================

    [gd_resource type="TileSet" load_steps=3 format=3]

    [ext_resource type="Texture2D" path="res://tiles/terrain.png" id="0"]

    [sub_resource type="TileSetAtlasSource" id="0"]
    resource_name = "terrain"
    texture = ExtResource("0")
    2:1/animation_columns = 3                         animated tile
    2:1/animation_frame_0/duration = 1
    ...
    2:1/0 = 0                                         tile exists
    3:0/0 = 0
    3:0/0/physics_layer_0/polygon_0/points = PackedVector2Array(-8, 0, 8, 0, 8, 8, -8, 8)
    3:0/0/custom_data_0 = 5

    [resource]
    physics_layer_0/collision_layer = 1
    custom_data_layer_0/name = "coins"
    custom_data_layer_0/type = 2
    sources/0 = SubResource("0")

Tiles are keyed "column:row" in the atlas. "/0" is the alternative tile:
the exporter only writes the base tile, flips are handled by the
TileMapLayer's alternative ids.

=============================================================================
TILE PROPERTIES
=============================================================================

    godot:physics_layer         physics layer index of the tile's shapes (0)
    godot:one_way               shapes are one-way collisions
    godot:linear_velocity       Vector2, conveyor-belt style tiles
    godot:angular_velocity      float
    godot:custom_data:<name>    value on custom data layer <name>

Tileset properties:

    godot:collision_layer / godot:collision_mask   physics layer 0
    godot:physics_layer_<n>/collision_layer|mask   any physics layer
    godot:use_texture_padding
    godot:res_path / godot:project_root

=============================================================================
SKIPPED TILES
=============================================================================

A tile is left out when its cell is a later frame of another tile's
animation (as Godot lays the frames out, see tiles/animation.py), or when
it is blank: no class, no properties, no collision, no animation
and every pixel fully transparent.

=============================================================================
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tmx_manager import Tile, Tileset

from ..config import ExportConfig
from ..diagnostics import ExportLog
from ..errors import ExportError
from ..model.properties import PropertyBag
from ..model.resources import ExternalResourceType, ResourceRegistry, SubResourceType
from ..model.tile_data import CustomData, PhysicsData, Polygon, TileData
from ..model.values import Color, PackedVector2Array, Vector2, Vector2i
from ..project import ProjectPaths
from ..tiles.animation import AnimationLayout, animation_speed, validate_animation
from ..tiles.atlas import atlas_coords, column_count, pixel_offset
from ..tiles.image_probe import AtlasImage
from ..writer.serializer import serialize_resource

TILE_SHAPE_SQUARE = 0
TILE_SHAPE_ISOMETRIC = 1
TILE_LAYOUT_STACKED = 0
TILE_LAYOUT_DIAMOND_DOWN = 1

CUSTOM_DATA_PREFIX = "custom_data:"

# Godot Variant.Type values
VARIANT_TYPES = [
    (bool, 1),
    (int, 2),
    (float, 3),
    (str, 4),
    (Vector2, 5),
    (Vector2i, 6),
    (Color, 20),
]


def variant_type(value: Any) -> int:
    for python_type, godot_type in VARIANT_TYPES:
        if isinstance(value, python_type):
            return godot_type
    return 0


class TilesetExporter:
    """Converts one Tiled tileset with an atlas image into one .tres document."""

    def __init__(self, tileset: Tileset, output_path: Union[str, Path],
                 config: Optional[ExportConfig] = None,
                 log: Optional[ExportLog] = None):
        self.tileset = tileset
        self.output_path = Path(output_path)
        self.bag = PropertyBag.parse(tileset.properties, tileset.base_dir)
        self.config = (config or ExportConfig()).with_properties(self.bag)
        self.log = log or ExportLog(verbose=self.config.verbose)

        self.project = ProjectPaths.for_output(self.output_path, self.config.project_root)
        self.registry = ResourceRegistry(self.project, self.log)

        self.image: Optional[AtlasImage] = None
        self.columns = 0
        self.physics_layers: List[int] = []
        self.custom_layers: Dict[str, int] = {}
        self.custom_types: List[int] = []
        self.animations: Dict[int, AnimationLayout] = {}

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def build(self) -> str:
        tileset = self.tileset
        if tileset.image is None:
            raise ExportError(f"Tileset '{tileset.name}' is an image collection, "
                              f"only single-image tilesets can become a TileSet")

        self.log.info(f"Exporting tileset '{tileset.name}' to {self.output_path}")
        image_path = (tileset.base_dir or Path.cwd()) / tileset.image.source
        self.image = AtlasImage.open(image_path, self.log)

        image_width = tileset.image.width or (self.image.width if self.image else None)
        self.columns = column_count(tileset, image_width)
        if self.columns <= 0:
            raise ExportError(f"Tileset '{tileset.name}' has no tile columns")

        texture = None
        res_path = self.project.to_res_path(image_path)
        if res_path is None:
            self.log.warn(f"{image_path} is outside the Godot project at {self.project.root}")
        else:
            texture = self.registry.register_external(ExternalResourceType.Texture, res_path)

        atlas_properties = {
            "resource_name": tileset.name,
            "texture": texture,
            "margins": Vector2i(tileset.margin, tileset.margin),
            "separation": Vector2i(tileset.spacing, tileset.spacing),
            "texture_region_size": Vector2i(tileset.tilewidth, tileset.tileheight),
            "use_texture_padding": self.bag.flag("use_texture_padding", True),
        }
        for tile_data in self.collect_tiles():
            atlas_properties.update(self.tile_properties(tile_data))

        source = self.registry.register_sub(SubResourceType.TileSetAtlasSource, atlas_properties)
        return serialize_resource("TileSet", self.registry, self.resource_properties(source),
                                  self.config.format_version)

    def write(self) -> Path:
        text = self.build()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_path, 'w', encoding='utf-8', newline='\n') as handle:
            handle.write(text)
        self.log.info(f"Tileset exported successfully to {self.output_path}")
        return self.output_path

    # =========================================================================
    # TILES
    # =========================================================================

    def collect_tiles(self) -> List[TileData]:
        tileset = self.tileset
        tile_ids = range(tileset.tilecount) if tileset.tilecount else sorted(tileset.tiles)

        # Cells Godot plays as later animation frames can't hold tiles of their own
        frame_tiles = set()
        for tile_id in sorted(tileset.tiles):
            tile = tileset.tiles[tile_id]
            if not tile.animation:
                continue
            layout = validate_animation(
                tile.id, [frame.tileid for frame in tile.animation], self.columns, self.log,
                speed=animation_speed(tile.animation[0].duration),
                frame_duration=self.config.frame_duration
            )
            if layout is not None:
                self.animations[tile.id] = layout
                frame_tiles.update(layout.frame_tiles(tile.id, self.columns)[1:])

        tiles = []
        for tile_id in tile_ids:
            if tile_id in frame_tiles:
                continue
            tile = tileset.tiles.get(tile_id)
            if self.is_blank(tile_id, tile):
                continue
            tiles.append(self.build_tile_data(tile_id, tile))
        return tiles

    def is_blank(self, tile_id: int, tile: Optional[Tile]) -> bool:
        if tile is not None and (tile.type or tile.properties or tile.animation
                                 or (tile.objectgroup and tile.objectgroup.objects)):
            return False
        if self.image is None:
            return False
        x, y = pixel_offset(self.tileset, tile_id, self.columns)
        return self.image.is_blank(x, y, self.tileset.tilewidth, self.tileset.tileheight)

    def build_tile_data(self, tile_id: int, tile: Optional[Tile]) -> TileData:
        tile_data = TileData(position=atlas_coords(tile_id, self.columns))
        if tile is None:
            return tile_data

        bag = PropertyBag.parse(tile.properties, self.tileset.base_dir)

        physics = self.build_physics(tile, bag)
        if physics is not None:
            tile_data.physics.append(physics)

        for key, value in bag.settings.items():
            if key.startswith(CUSTOM_DATA_PREFIX) and value is not None:
                layer = self.custom_layer(key[len(CUSTOM_DATA_PREFIX):], value)
                tile_data.custom_data.append(CustomData(layer, value))

        layout = self.animations.get(tile_id)
        if layout is not None:
            tile_data.is_animated = True
            tile_data.columns = layout.columns
            tile_data.separation = layout.separation
            tile_data.speed = layout.speed
            tile_data.frames = layout.frames

        return tile_data

    def build_physics(self, tile: Tile, bag: PropertyBag) -> Optional[PhysicsData]:
        """Collision shapes of a tile, relative to the tile centre."""
        objects = tile.objectgroup.objects if tile.objectgroup else []
        if not objects:
            return None

        layer_id = int(bag.setting("physics_layer", 0))
        one_way = bag.flag("one_way")
        cx = self.tileset.tilewidth / 2
        cy = self.tileset.tileheight / 2

        physics = PhysicsData(
            id=layer_id,
            linear_velocity=bag.setting("linear_velocity", Vector2(0, 0)),
            angular_velocity=bag.setting("angular_velocity", 0),
        )
        for obj in objects:
            if obj.shape == "rectangle":
                left, top = obj.x - cx, obj.y - cy
                right, bottom = obj.x + obj.width - cx, obj.y + obj.height - cy
                pairs = [(left, top), (right, top), (right, bottom), (left, bottom)]
            elif obj.shape == "polygon":
                pairs = [(obj.x + px - cx, obj.y + py - cy) for px, py in obj.points]
            else:
                self.log.warn(f"Tile {tile.id} of '{self.tileset.name}': {obj.shape} collision "
                              f"shapes are not supported, only rectangles and polygons")
                continue
            physics.polygons.append(Polygon(PackedVector2Array.from_pairs(pairs), one_way))

        if not physics.polygons:
            return None
        if layer_id not in self.physics_layers:
            self.physics_layers.append(layer_id)
        return physics

    def custom_layer(self, name: str, value: Any) -> int:
        if name not in self.custom_layers:
            self.custom_layers[name] = len(self.custom_layers)
            self.custom_types.append(variant_type(value))
        return self.custom_layers[name]

    def tile_properties(self, tile_data: TileData) -> Dict[str, Any]:
        key = tile_data.key
        properties = {}

        if tile_data.is_animated:
            properties[f"{key}/animation_columns"] = tile_data.columns
            if tile_data.separation != Vector2i(0, 0):
                properties[f"{key}/animation_separation"] = tile_data.separation
            if tile_data.speed != 1.0:
                properties[f"{key}/animation_speed"] = tile_data.speed
            for index, frame in enumerate(tile_data.frames):
                properties[f"{key}/animation_frame_{index}/duration"] = frame.duration

        properties[f"{key}/0"] = 0

        for physics in tile_data.physics:
            layer = f"{key}/0/physics_layer_{physics.id}"
            if physics.linear_velocity != Vector2(0, 0):
                properties[f"{layer}/linear_velocity"] = physics.linear_velocity
            if physics.angular_velocity:
                properties[f"{layer}/angular_velocity"] = physics.angular_velocity
            for index, polygon in enumerate(physics.polygons):
                properties[f"{layer}/polygon_{index}/points"] = polygon.points
                if polygon.one_way:
                    properties[f"{layer}/polygon_{index}/one_way_collision"] = True

        for custom in tile_data.custom_data:
            properties[f"{key}/0/custom_data_{custom.layer}"] = custom.value

        return properties

    # =========================================================================
    # [resource] BLOCK
    # =========================================================================

    def resource_properties(self, source) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}

        if self.tileset.grid_orientation == "isometric":
            properties["tile_shape"] = TILE_SHAPE_ISOMETRIC
            properties["tile_layout"] = TILE_LAYOUT_DIAMOND_DOWN

        for layer_id in sorted(self.physics_layers):
            fallback_layer = self.bag.setting("collision_layer", 1) if layer_id == 0 else 1
            fallback_mask = self.bag.setting("collision_mask", 1) if layer_id == 0 else 1
            layer = self.bag.setting(f"physics_layer_{layer_id}/collision_layer", fallback_layer)
            mask = self.bag.setting(f"physics_layer_{layer_id}/collision_mask", fallback_mask)
            properties[f"physics_layer_{layer_id}/collision_layer"] = layer
            if mask != 1:
                properties[f"physics_layer_{layer_id}/collision_mask"] = mask

        for name, index in self.custom_layers.items():
            properties[f"custom_data_layer_{index}/name"] = name
            properties[f"custom_data_layer_{index}/type"] = self.custom_types[index]

        properties["tile_size"] = Vector2i(self.tileset.tilewidth, self.tileset.tileheight)
        properties["sources/0"] = source
        return properties


def export_tileset(tsx_path: Union[str, Path], output_path: Optional[Union[str, Path]] = None,
                   config: Optional[ExportConfig] = None,
                   log: Optional[ExportLog] = None) -> Path:
    """
    Export a .tsx file to a .tres TileSet.

    Raises:
    -------
    ExportError : On a fatal error. Nothing is written in that case.
    """
    tileset = Tileset.load(tsx_path)
    if output_path is None:
        output_path = Path(tsx_path).with_suffix('.tres')
    return TilesetExporter(tileset, output_path, config, log).write()
