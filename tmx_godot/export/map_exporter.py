"""
Tiled map -> Godot scene (.tscn)

=============================================================================
WHAT BECOMES WHAT
=============================================================================

    TMX                                 TSCN
    ---                                 ----
    <map>                               [node name="<file>" type="Node2D"]
    <layer> (tile layer)                TileMapLayer, one per used tileset
    <objectgroup>                       objects attached to the enclosing node
                                        (or a Node2D container, see below)
    <group>                             Node2D container
    rectangle object                    Area2D + CollisionShape2D (RectangleShape2D)
    ellipse object                      Area2D + CollisionShape2D (CircleShape2D)
    polygon / polyline object           Area2D + CollisionPolygon2D
    point object                        Node2D
    tile object                         Sprite2D cut from the tileset texture
    text object                         not supported, skipped with a warning

Object layers are flattened by default: their objects hang from the
layer's parent and inherit the layer's groups and z_index. Set
'object_layer_containers' (or the map property
godot:object_layer_containers) to get one Node2D per object layer.

=============================================================================
POSITIONS
=============================================================================

Tiled places rectangles and ellipses by their top-left corner and rotates
them around it. Godot places nodes by their centre:

    Tiled: (x, y) = top-left         Godot: position = rotated centre
    +--------+                       +--------+
    x        |                       |   +    |
    |        |                       |        |
    +--------+                       +--------+

    centre = (x, y) + rotate((w/2, h/2), rotation)

Tile objects use the BOTTOM-left corner instead, so their centre offset is
(w/2, -h/2). Positions are rounded to 3 decimals, rotations converted to
radians and rounded to 6.

=============================================================================
RUN ORDER
=============================================================================

    1. register the TileSet of every used tileset
    2. resolve the root node (map properties)
    3. walk the layers in document order, registering nodes as we go
    4. serialize everything to a string
    5. write the string to disk in one go

A fatal error anywhere in 1-4 leaves no file behind.

=============================================================================
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from tmx_manager import (
    LayerGroup, MapObject, ObjectGroup, TiledMap, TileLayer, Tileset, split_gid
)

from ..config import ExportConfig
from ..diagnostics import ExportLog
from ..model.node import Node, NodeTree
from ..model.properties import PropertyBag, PropertyResolver, ResourcePath
from ..model.resources import (
    ExternalResource, ExternalResourceType, ResourceRegistry, SubResourceType
)
from ..model.values import (
    Color, PackedByteArray, PackedVector2Array, Vector2
)
from ..model.defaults import strip_defaults
from ..project import ProjectPaths, normalize_res_path
from ..tiles.atlas import (
    alternative_id, atlas_coords, cell_id, column_count, pack_tile_map_data, region_rect
)
from ..tiles.image_probe import AtlasImage
from ..writer.serializer import serialize_scene

BUILD_MODE_SOLIDS = 0
BUILD_MODE_SEGMENTS = 1


@dataclass
class ObjectContext:
    """Where the objects of one object layer go, and what they inherit."""
    owner: Optional[Node] = None
    groups: List[str] = field(default_factory=list)
    z_index: int = 0
    visible: bool = True
    offset: Tuple[float, float] = (0.0, 0.0)


def rotated_offset(x: float, y: float, dx: float, dy: float,
                   degrees: float) -> Tuple[float, float]:
    """(x, y) + (dx, dy) rotated clockwise by 'degrees' around (x, y)."""
    radians = math.radians(degrees)
    cos, sin = math.cos(radians), math.sin(radians)
    return x + dx * cos - dy * sin, y + dx * sin + dy * cos


def layer_modulate(layer) -> Color:
    """Tint color and opacity of a layer as a Godot modulate color."""
    if layer.tintcolor:
        return Color.from_hex(layer.tintcolor, layer.opacity)
    return Color(1, 1, 1, round(layer.opacity, 6))


def _merge_groups(*group_lists: List[str]) -> List[str]:
    merged = []
    for groups in group_lists:
        for group in groups:
            if group not in merged:
                merged.append(group)
    return merged


class MapExporter:
    """
    Converts one TiledMap into one .tscn document.

    Everything that numbers things (registry, node tree, log) belongs to
    the exporter instance, so two exports never share ids.
    """

    def __init__(self, tiled_map: TiledMap, output_path: Union[str, Path],
                 config: Optional[ExportConfig] = None,
                 log: Optional[ExportLog] = None):
        self.map = tiled_map
        self.output_path = Path(output_path)
        self.base_dir = tiled_map.filepath.parent if tiled_map.filepath else None

        self.map_bag = PropertyBag.parse(tiled_map.properties, self.base_dir)
        self.config = (config or ExportConfig()).with_properties(self.map_bag)
        self.log = log or ExportLog(verbose=self.config.verbose)

        self.project = ProjectPaths.for_output(self.output_path, self.config.project_root)
        self.registry = ResourceRegistry(self.project, self.log)
        self.resolver = PropertyResolver(self.registry, self.log)

        root_name = self.map_bag.setting("name") or self.output_path.stem
        self.tree = NodeTree(Node(str(root_name), self.config.root_type))

        self._tileset_resources: Dict[int, Optional[ExternalResource]] = {}
        self._texture_resources: Dict[Path, Optional[ExternalResource]] = {}
        self._columns: Dict[int, int] = {}

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def build(self) -> str:
        """Run the whole conversion and return the .tscn text."""
        self.log.info(f"Exporting map to {self.output_path}")
        self.register_tilesets()

        root = self.tree.root
        root.properties = self.resolver.resolve(root.type, {}, self.map_bag)
        root.groups = self.map_bag.groups()
        root.meta = self.resolver.resolve_meta(self.map_bag)

        context = ObjectContext()
        for layer in self.map.layers:
            self.handle_layer(layer, context)

        return serialize_scene(self.tree, self.registry, self.config.format_version)

    def write(self) -> Path:
        text = self.build()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_path, 'w', encoding='utf-8', newline='\n') as handle:
            handle.write(text)
        self.log.info(f"Map exported successfully to {self.output_path}")
        return self.output_path

    # =========================================================================
    # TILESETS
    # =========================================================================

    def register_tilesets(self):
        for tileset in self.map.used_tilesets():
            bag = PropertyBag.parse(tileset.properties, tileset.base_dir)
            resource = None
            res_path = self.tileset_res_path(tileset, bag)
            if res_path is not None:
                resource = self.registry.register_external(ExternalResourceType.TileSet, res_path)
            self._tileset_resources[id(tileset)] = resource

    def tileset_res_path(self, tileset: Tileset, bag: PropertyBag) -> Optional[str]:
        """
        godot:res_path when set, otherwise the .tsx path with a .tres suffix.
        """
        configured = bag.setting("res_path")
        if isinstance(configured, ResourcePath):
            return self._project_path(configured.base_dir / configured.path
                                      if configured.base_dir else configured.path)
        if configured is not None:
            return normalize_res_path(str(configured))

        if tileset.filepath is None:
            self.log.warn(f"godot:res_path is not defined for embedded tileset "
                          f"'{tileset.name}', its layers will have no TileSet")
            return None
        return self._project_path(tileset.filepath.with_suffix('.tres'))

    def _project_path(self, path) -> Optional[str]:
        res_path = self.project.to_res_path(path)
        if res_path is None:
            self.log.warn(f"{path} is outside the Godot project at {self.project.root}")
        return res_path

    def atlas_columns(self, tileset: Tileset) -> int:
        """Atlas columns of a tileset, probing the image when the TSX has no size."""
        key = id(tileset)
        if key not in self._columns:
            width = None
            if tileset.image and not tileset.image.width and tileset.base_dir:
                image = AtlasImage.open(tileset.base_dir / tileset.image.source, self.log)
                width = image.width if image else None
            self._columns[key] = column_count(tileset, width)
        return self._columns[key]

    def texture_for(self, tileset: Tileset, local_id: int) -> Tuple[Optional[ExternalResource], bool]:
        """
        Texture of a tile and whether it's an atlas region.

        Collection tilesets have one image per tile and no atlas.
        """
        if tileset.image is not None:
            image, is_atlas = tileset.image, True
        else:
            tile = tileset.tiles.get(local_id)
            if tile is None or tile.image is None:
                self.log.warn(f"Tile {local_id} of tileset '{tileset.name}' has no image")
                return None, False
            image, is_atlas = tile.image, False

        image_path = (tileset.base_dir or Path.cwd()) / image.source
        if image_path not in self._texture_resources:
            res_path = self._project_path(image_path)
            texture = None
            if res_path is not None:
                texture = self.registry.register_external(ExternalResourceType.Texture, res_path)
            self._texture_resources[image_path] = texture
        return self._texture_resources[image_path], is_atlas

    # =========================================================================
    # LAYERS
    # =========================================================================

    def handle_layer(self, layer, context: ObjectContext):
        bag = PropertyBag.parse(layer.properties, self.base_dir)

        if isinstance(layer, TileLayer):
            self.handle_tile_layer(layer, bag, context)
        elif isinstance(layer, ObjectGroup):
            self.handle_object_group(layer, bag, context)
        elif isinstance(layer, LayerGroup):
            self.handle_group_layer(layer, bag, context)

    def handle_tile_layer(self, layer: TileLayer, bag: PropertyBag, context: ObjectContext):
        if bag.flag("ignore"):
            self.log.info(f"Skipping ignored layer '{layer.name}'")
            return

        # -----------------------------------------------------------------
        # GROUP CELLS BY TILESET
        # -----------------------------------------------------------------
        cells_by_tileset: Dict[int, Dict[int, tuple]] = {}
        unknown_gids = set()
        for x, y, raw_gid in layer.iter_cells():
            gid, flip_h, flip_v, flip_d = split_gid(raw_gid)
            tileset = self.map.get_tileset_for_gid(gid)
            columns = self.atlas_columns(tileset) if tileset else 0
            if tileset is None or columns <= 0:
                unknown_gids.add(gid)
                continue

            coords = atlas_coords(gid - tileset.firstgid, columns)
            index = self.map.tilesets.index(tileset)
            cells_by_tileset.setdefault(index, {})[cell_id(x, y)] = (
                x, y, 0, coords.x, coords.y, alternative_id(flip_h, flip_v, flip_d)
            )

        if unknown_gids:
            self.log.warn(f"Layer '{layer.name}': {len(unknown_gids)} tile id(s) have no "
                          f"atlas tileset, those cells are skipped")

        # -----------------------------------------------------------------
        # ONE TileMapLayer PER TILESET
        # -----------------------------------------------------------------
        several = len(cells_by_tileset) > 1
        for index in sorted(cells_by_tileset):
            tileset = self.map.tilesets[index]
            cells = cells_by_tileset[index]
            name = f"{layer.name}_{tileset.name}" if several else layer.name

            base = {
                "z_index": bag.setting("z_index", 0),
                "visible": layer.visible,
                "modulate": layer_modulate(layer),
                "position": Vector2(layer.offsetx, layer.offsety),
                "tile_map_data": PackedByteArray(pack_tile_map_data(
                    cells[key] for key in sorted(cells)
                )),
                "tile_set": self._tileset_resources.get(id(tileset)),
                "collision_enabled": bag.flag("collision_enabled", True),
            }
            node = Node(name, "TileMapLayer", groups=bag.groups())
            node.properties = self.resolver.resolve(node.type, base, bag)
            node.meta = self.resolver.resolve_meta(bag)
            self.tree.register_node(context.owner, node)

    def handle_object_group(self, group: ObjectGroup, bag: PropertyBag, context: ObjectContext):
        if self.config.object_layer_containers:
            node = self._container(group, bag, "Objects")
            self.tree.register_node(context.owner, node)
            inner = ObjectContext(owner=node)
        else:
            if bag.script is not None or bag.overrides or bag.variables:
                self.log.warn(f"Object layer '{group.name}' has node properties but object "
                              f"layers are flattened, enable object_layer_containers to keep them")
            inner = ObjectContext(
                owner=context.owner,
                groups=_merge_groups(context.groups, bag.groups()),
                z_index=bag.setting("z_index", context.z_index),
                visible=context.visible and group.visible,
                offset=(context.offset[0] + group.offsetx, context.offset[1] + group.offsety),
            )

        for obj in group.objects:
            self.handle_object(obj, inner)

    def handle_group_layer(self, group: LayerGroup, bag: PropertyBag, context: ObjectContext):
        node = self._container(group, bag, "Group")
        self.tree.register_node(context.owner, node)

        inner = ObjectContext(owner=node)
        for layer in group.layers:
            self.handle_layer(layer, inner)

    def _container(self, layer, bag: PropertyBag, default_name: str) -> Node:
        base = {
            "z_index": bag.setting("z_index", 0),
            "visible": layer.visible,
            "modulate": layer_modulate(layer),
            "position": Vector2(layer.offsetx, layer.offsety),
        }
        node = Node(layer.name or default_name, "Node2D", groups=bag.groups())
        node.properties = self.resolver.resolve(node.type, base, bag)
        node.meta = self.resolver.resolve_meta(bag)
        return node

    # =========================================================================
    # OBJECTS
    # =========================================================================

    def handle_object(self, obj: MapObject, context: ObjectContext):
        bag = PropertyBag.parse(obj.properties, self.base_dir)

        if obj.shape == "tile":
            self.generate_sprite(obj, bag, context)
        elif obj.shape in ("rectangle", "ellipse", "polygon", "polyline"):
            self.generate_area(obj, bag, context)
        elif obj.shape == "point":
            self.generate_point(obj, bag, context)
        else:
            self.log.warn(f"Object '{obj.name or obj.id}' is a {obj.shape} object, "
                          f"which can't be exported. Skipped")

    def _round(self, value: float) -> float:
        return round(value, self.config.position_decimals)

    def _rotation(self, degrees: float) -> float:
        return round(math.radians(degrees), self.config.rotation_decimals)

    def _common(self, obj: MapObject, bag: PropertyBag, context: ObjectContext,
                position: Tuple[float, float]) -> dict:
        return {
            "position": Vector2(self._round(position[0]), self._round(position[1])),
            "rotation": self._rotation(obj.rotation),
            "z_index": bag.setting("z_index", context.z_index),
            "visible": context.visible and obj.visible,
        }

    def _instance(self, bag: PropertyBag) -> Optional[ExternalResource]:
        path = bag.setting("instance")
        if path is None:
            return None
        if not isinstance(path, ResourcePath):
            path = ResourcePath(str(path))
        return self.resolver.reference(ExternalResourceType.PackedScene, path)

    def _register(self, obj: MapObject, bag: PropertyBag, context: ObjectContext,
                  name: str, node_type: str, base: dict) -> Node:
        instance = self._instance(bag)
        node = Node(
            name,
            None if instance is not None else node_type,
            groups=_merge_groups(context.groups, bag.groups()),
            instance=instance,
        )
        node.properties = self.resolver.resolve(node_type, base, bag)
        node.meta = self.resolver.resolve_meta(bag)
        return self.tree.register_node(context.owner, node)

    def generate_area(self, obj: MapObject, bag: PropertyBag, context: ObjectContext):
        area_type = str(bag.setting("type", "Area2D"))
        x = obj.x + context.offset[0]
        y = obj.y + context.offset[1]

        if obj.shape in ("rectangle", "ellipse"):
            position = rotated_offset(x, y, obj.width / 2, obj.height / 2, obj.rotation)
        else:
            position = (x, y)

        base = self._common(obj, bag, context, position)
        base["collision_layer"] = bag.setting("collision_layer", 1)
        base["collision_mask"] = bag.setting("collision_mask", 1)
        area = self._register(obj, bag, context, obj.name or area_type, area_type, base)

        # -----------------------------------------------------------------
        # COLLISION CHILD
        # -----------------------------------------------------------------
        if obj.shape == "rectangle":
            shape = self.registry.register_sub(
                SubResourceType.RectangleShape2D, {"size": Vector2(obj.width, obj.height)}
            )
            child = Node("CollisionShape2D", "CollisionShape2D", properties={"shape": shape})
        elif obj.shape == "ellipse":
            if obj.width != obj.height:
                self.log.warn(f"Ellipse '{obj.name or obj.id}' is not a circle, "
                              f"exported with radius {obj.width / 2}")
            shape = self.registry.register_sub(
                SubResourceType.CircleShape2D, {"radius": obj.width / 2}
            )
            child = Node("CollisionShape2D", "CollisionShape2D", properties={"shape": shape})
        else:
            build_mode = BUILD_MODE_SOLIDS if obj.shape == "polygon" else BUILD_MODE_SEGMENTS
            child = Node("CollisionPolygon2D", "CollisionPolygon2D", properties=strip_defaults(
                "CollisionPolygon2D", {
                    "build_mode": build_mode,
                    "polygon": PackedVector2Array.from_pairs(obj.points),
                }
            ))

        child.groups = bag.groups("shape_groups")
        self.tree.register_node(area, child)

    def generate_point(self, obj: MapObject, bag: PropertyBag, context: ObjectContext):
        position = (obj.x + context.offset[0], obj.y + context.offset[1])
        base = self._common(obj, bag, context, position)
        self._register(obj, bag, context, obj.name or "Point", "Node2D", base)

    def generate_sprite(self, obj: MapObject, bag: PropertyBag, context: ObjectContext):
        gid, flip_h, flip_v, _ = split_gid(obj.gid)
        tileset = self.map.get_tileset_for_gid(gid)
        if tileset is None:
            self.log.warn(f"Tile object '{obj.name or obj.id}' uses unknown tile {gid}, skipped")
            return

        local_id = gid - tileset.firstgid
        texture, is_atlas = self.texture_for(tileset, local_id)

        width = obj.width or tileset.tilewidth
        height = obj.height or tileset.tileheight
        x = obj.x + context.offset[0]
        y = obj.y + context.offset[1]
        position = rotated_offset(x, y, width / 2, -height / 2, obj.rotation)

        base = self._common(obj, bag, context, position)
        base["texture"] = texture
        if is_atlas:
            columns = self.atlas_columns(tileset)
            if columns > 0:
                base["region_enabled"] = True
                base["region_rect"] = region_rect(tileset, local_id, columns)
        if is_atlas and (width != tileset.tilewidth or height != tileset.tileheight):
            base["scale"] = Vector2(self._round(width / tileset.tilewidth),
                                    self._round(height / tileset.tileheight))
        base["flip_h"] = flip_h
        base["flip_v"] = flip_v

        self._register(obj, bag, context, obj.name or "Sprite2D", "Sprite2D", base)


def export_map(tmx_path: Union[str, Path], output_path: Optional[Union[str, Path]] = None,
               config: Optional[ExportConfig] = None,
               log: Optional[ExportLog] = None) -> Path:
    """
    Export a .tmx file to a .tscn scene.

    The output defaults to the map's path with a .tscn suffix.

    Raises:
    -------
    ExportError : On a fatal error. Nothing is written in that case.
    """
    tiled_map = TiledMap.load(tmx_path)
    if output_path is None:
        output_path = Path(tmx_path).with_suffix('.tscn')
    return MapExporter(tiled_map, output_path, config, log).write()
