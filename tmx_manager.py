#!/usr/bin/env python3

"""
Module for reading TMX/TSX files (Tiled Map Format) into a read-only snapshot
Supports TMX version 1.11.0 and earlier versions

=============================================================================
WHAT IS TMX?
=============================================================================

TMX (Tiled Map XML) is the native format of the Tiled Map Editor. TMX files
describe:

- Map dimensions and tile sizes
- Tilesets (collections of tile graphics), embedded or external (.tsx)
- Layers (tile layers, object layers, groups)
- Custom properties (metadata on any element)

This module turns those files into plain dataclasses. The exporter in
tmx_godot only ever READS these objects: nothing here writes back to disk.

=============================================================================
TMX FILE STRUCTURE
=============================================================================

    <map version="1.10" orientation="orthogonal" width="100" height="100"
         tilewidth="32" tileheight="32">

        <tileset firstgid="1" source="terrain.tsx"/>

        <layer name="Ground" width="100" height="100">
            <data encoding="csv">
                1,2,3,4,5,...
            </data>
        </layer>

        <objectgroup name="Zones">
            <object id="1" name="Zone" x="0" y="0" width="32" height="32"/>
            <object id="2" x="64" y="64"><point/></object>
            <object id="3" x="0" y="96">
                <polygon points="0,0 32,0 32,32"/>
            </object>
        </objectgroup>
    </map>

=============================================================================
GLOBAL TILE IDs (GIDs) AND FLIP FLAGS
=============================================================================

Tiles are referenced by Global IDs (GIDs) across all tilesets:

    Tileset A (firstgid=1):   tiles 1-100
    Tileset B (firstgid=101): tiles 101-200

    GID 0 = empty cell

The three highest bits of a GID are transform flags:

    bit 31  0x80000000  flipped horizontally
    bit 30  0x40000000  flipped vertically
    bit 29  0x20000000  flipped anti-diagonally (transposed)

Always strip them (see split_gid) before looking up a tileset.

=============================================================================
"""

import xml.etree.ElementTree as ET
from typing import Optional, List, Dict, Any, Union, Tuple
from dataclasses import dataclass, field
from pathlib import Path
import base64
import gzip
import zlib

import numpy as np


FLIPPED_HORIZONTALLY_FLAG = 0x80000000
FLIPPED_VERTICALLY_FLAG = 0x40000000
FLIPPED_DIAGONALLY_FLAG = 0x20000000
GID_MASK = 0x1FFFFFFF


def split_gid(gid: int) -> Tuple[int, bool, bool, bool]:
    """
    Separate a raw GID into the tile GID and its transform flags.

    Returns:
    --------
    (gid, flip_h, flip_v, flip_d)
    """
    gid = int(gid)
    return (
        gid & GID_MASK,
        bool(gid & FLIPPED_HORIZONTALLY_FLAG),
        bool(gid & FLIPPED_VERTICALLY_FLAG),
        bool(gid & FLIPPED_DIAGONALLY_FLAG),
    )


def _parse_points(points: str) -> List[Tuple[float, float]]:
    """Parse a Tiled point list: "0,0 32,0 32,32"."""
    result = []
    for pair in points.split():
        x, y = pair.split(',')
        result.append((float(x), float(y)))
    return result


def _parse_properties(elem: ET.Element) -> Dict[str, 'Property']:
    """Read the <properties> child of any element into a name → Property dict."""
    properties: Dict[str, Property] = {}
    props_elem = elem.find('properties')
    if props_elem is not None:
        for prop_elem in props_elem.findall('property'):
            prop = Property.from_xml(prop_elem)
            # Store by name for O(1) lookup
            properties[prop.name] = prop
    return properties


# =============================================================================
# PROPERTY CLASS
# =============================================================================

@dataclass
class Property:
    """
    Custom property attached to any TMX element.

    ==========================================================================
    SUPPORTED TYPES
    ==========================================================================

    - string: Text value (default). Multi-line strings live in the element text.
    - int / float / bool
    - color:  "#AARRGGBB" string, kept as-is
    - file:   Path relative to the file that declares the property
    - object: Reference to another object by ID (int)
    - class:  Custom class, members stored as a nested {name: value} dict.
              'propertytype' holds the class name (e.g. "Vector2").

    ==========================================================================
    """
    name: str                    # Property name (key)
    type: str = "string"         # Value type
    value: Any = None            # The actual value
    propertytype: str = ""       # Class name for class/enum properties

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        """
        Parse property from XML element.

        XML format:
            <property name="solid" type="bool" value="true"/>
            <property name="speed" type="class" propertytype="Vector2">
                <properties>
                    <property name="x" type="float" value="2"/>
                </properties>
            </property>
        """
        prop_type = elem.get('type', 'string')
        propertytype = elem.get('propertytype', '')

        if prop_type == 'class':
            members = _parse_properties(elem)
            value = {name: member.value for name, member in members.items()}
            return cls(name=elem.get('name'), type=prop_type, value=value,
                       propertytype=propertytype)

        value = elem.get('value')
        if value is None:
            # Multi-line strings are stored as element text
            value = elem.text or ''

        # -----------------------------------------------------------------
        # TYPE CONVERSION
        # -----------------------------------------------------------------
        if prop_type in ('int', 'object'):
            value = int(value) if value != '' else 0
        elif prop_type == 'float':
            value = float(value) if value != '' else 0.0
        elif prop_type == 'bool':
            # XML stores as "true"/"false" strings
            value = value.lower() == 'true'

        return cls(name=elem.get('name'), type=prop_type, value=value,
                   propertytype=propertytype)


# =============================================================================
# IMAGE CLASS
# =============================================================================

@dataclass
class Image:
    """
    Image reference used in tilesets.

    source: Path to image file (relative to TMX/TSX file)
    width:  Image width in pixels (optional in old files)
    height: Image height in pixels (optional)
    """
    source: str
    width: Optional[int] = None
    height: Optional[int] = None
    trans: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        return cls(
            source=elem.get('source', ''),
            width=int(elem.get('width')) if elem.get('width') else None,
            height=int(elem.get('height')) if elem.get('height') else None,
            trans=elem.get('trans')
        )


# =============================================================================
# ANIMATION FRAME
# =============================================================================

@dataclass
class Frame:
    """One frame of a tile animation: local tile id shown for 'duration' ms."""
    tileid: int
    duration: int = 100


# =============================================================================
# TILE CLASS
# =============================================================================

@dataclass
class Tile:
    """
    Individual tile within a tileset.

    Only tiles with metadata (class, properties, collision shapes,
    animation, own image) appear in the TSX file. Tiles without an entry
    still exist in the atlas, they just carry nothing extra.

    ==========================================================================
    COLLISION SHAPES
    ==========================================================================

    Tiled's collision editor stores per-tile shapes as an <objectgroup>
    inside the <tile>. Coordinates are relative to the tile's top-left
    corner:

        <tile id="4">
            <objectgroup draworder="index">
                <object id="1" x="0" y="8" width="16" height="8"/>
            </objectgroup>
        </tile>

    ==========================================================================
    ANIMATIONS
    ==========================================================================

        <tile id="10">
            <animation>
                <frame tileid="10" duration="100"/>
                <frame tileid="11" duration="100"/>
            </animation>
        </tile>

    ==========================================================================
    """
    id: int
    type: str = ""                                   # Tile class
    properties: Dict[str, Property] = field(default_factory=dict)
    image: Optional[Image] = None                    # Image (for collection tilesets)
    animation: List[Frame] = field(default_factory=list)
    objectgroup: Optional['ObjectGroup'] = None      # Collision shapes

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tile':
        tile = cls(id=int(elem.get('id', 0)))
        # Tiled >= 1.9 writes 'class', older versions 'type'
        tile.type = elem.get('class', elem.get('type', ''))
        tile.properties = _parse_properties(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tile.image = Image.from_xml(img_elem)

        anim_elem = elem.find('animation')
        if anim_elem is not None:
            for frame_elem in anim_elem.findall('frame'):
                tile.animation.append(Frame(
                    tileid=int(frame_elem.get('tileid', 0)),
                    duration=int(frame_elem.get('duration', 100))
                ))

        group_elem = elem.find('objectgroup')
        if group_elem is not None:
            tile.objectgroup = ObjectGroup.from_xml(group_elem)

        return tile


# =============================================================================
# TILESET CLASS
# =============================================================================

@dataclass
class Tileset:
    """
    Tileset collection - a set of tile graphics.

    ==========================================================================
    SPACING AND MARGIN
    ==========================================================================

    margin = pixels around the EDGE of the entire image
    spacing = pixels BETWEEN tiles

    +--+===+===+===+--+
    |  | 0 | 1 | 2 |  |  <- margin
    +--+===+===+===+--+
    |  | 3 | 4 | 5 |  |
    +--+===+===+===+--+
         ^
         spacing between tiles

    ==========================================================================
    PATHS
    ==========================================================================

    base_dir is the directory image paths are relative to: the TSX file's
    directory for external tilesets, the TMX file's directory otherwise.
    filepath is the TSX file itself (None for embedded tilesets).

    ==========================================================================
    """
    firstgid: int
    name: str
    tilewidth: int
    tileheight: int
    tilecount: int = 0
    columns: int = 0
    spacing: int = 0
    margin: int = 0
    image: Optional[Image] = None
    tiles: Dict[int, Tile] = field(default_factory=dict)
    properties: Dict[str, Property] = field(default_factory=dict)
    source: Optional[str] = None                     # TSX path as written in the TMX
    grid_orientation: str = "orthogonal"
    base_dir: Optional[Path] = None
    filepath: Optional[Path] = None

    @classmethod
    def from_xml(cls, elem: ET.Element, firstgid: int) -> 'Tileset':
        """
        Parse tileset from XML element.

        Parameters:
        -----------
        elem : ET.Element
            The <tileset> XML element (from a TMX or the root of a TSX)
        firstgid : int
            First Global ID (from parent TMX, not the TSX itself)
        """
        tileset = cls(
            firstgid=firstgid,
            name=elem.get('name', ''),
            tilewidth=int(elem.get('tilewidth', 0)),
            tileheight=int(elem.get('tileheight', 0)),
            tilecount=int(elem.get('tilecount', 0)),
            columns=int(elem.get('columns', 0)),
            spacing=int(elem.get('spacing', 0)),
            margin=int(elem.get('margin', 0)),
            source=elem.get('source')
        )
        tileset.properties = _parse_properties(elem)

        grid_elem = elem.find('grid')
        if grid_elem is not None:
            tileset.grid_orientation = grid_elem.get('orientation', 'orthogonal')

        img_elem = elem.find('image')
        if img_elem is not None:
            tileset.image = Image.from_xml(img_elem)

        for tile_elem in elem.findall('tile'):
            tile = Tile.from_xml(tile_elem)
            tileset.tiles[tile.id] = tile

        return tileset

    @classmethod
    def load(cls, filepath: Union[str, Path], firstgid: int = 1) -> 'Tileset':
        """Load a standalone TSX file."""
        filepath = Path(filepath)
        root = ET.parse(filepath).getroot()
        tileset = cls.from_xml(root, firstgid)
        tileset.filepath = filepath.resolve()
        tileset.base_dir = tileset.filepath.parent
        return tileset


# =============================================================================
# LAYER DATA CLASS
# =============================================================================

@dataclass
class LayerData:
    """
    Tile layer data decoding.

    ==========================================================================
    DATA ENCODINGS
    ==========================================================================

    1. XML (deprecated):  <tile gid="1"/><tile gid="2"/>...
    2. CSV:               1,2,3,4,5,...
    3. Base64:            little-endian uint32 GIDs, optionally compressed
                          with zlib, gzip or zstd

    ==========================================================================
    INTERNAL STORAGE
    ==========================================================================

    Tiles are stored as a 2D numpy uint32 array indexed [y, x], flags
    included. uint32 is required: the flip flags live in the top bits.

    ==========================================================================
    """
    encoding: Optional[str] = None
    compression: Optional[str] = None
    tiles: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=np.uint32))

    def decode_data(self, data_elem: ET.Element, width: int, height: int):
        """
        Decode tile data from the <data> element into a (height, width) grid.

        Raises:
        -------
        ValueError : If the decoded tile count doesn't match width*height
        """
        encoding = data_elem.get('encoding')
        compression = data_elem.get('compression')

        if encoding == 'csv':
            csv_data = (data_elem.text or '').strip()
            # Filter empty strings (trailing commas create empty elements)
            gids = [int(x) for x in csv_data.replace('\n', '').split(',')
                    if x.strip()]
            flat = np.array(gids, dtype=np.uint32)

        elif encoding == 'base64':
            raw_data = base64.b64decode((data_elem.text or '').strip())

            if compression == 'zlib':
                raw_data = zlib.decompress(raw_data)
            elif compression == 'gzip':
                raw_data = gzip.decompress(raw_data)
            elif compression == 'zstd':
                import zstandard as zstd
                raw_data = zstd.ZstdDecompressor().decompress(raw_data)

            flat = np.frombuffer(raw_data, dtype='<u4').astype(np.uint32)

        else:
            gids = [int(tile_elem.get('gid', 0)) for tile_elem in data_elem.findall('tile')]
            flat = np.array(gids, dtype=np.uint32)

        if flat.size != width * height:
            raise ValueError(
                f"Layer data holds {flat.size} tiles, expected {width}x{height}"
            )

        self.tiles = flat.reshape((height, width))
        self.encoding = encoding
        self.compression = compression


# =============================================================================
# TILE LAYER CLASS
# =============================================================================

@dataclass
class TileLayer:
    """
    Tile layer - a grid of tile references.

    Rendering properties:
    - visible, opacity, tintcolor (#AARRGGBB or #RRGGBB)

    Positioning:
    - offsetx, offsety: Pixel offset from map origin
    """
    name: str
    width: int
    height: int
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    tintcolor: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    data: LayerData = field(default_factory=LayerData)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileLayer':
        layer = cls(
            name=elem.get('name', ''),
            width=int(elem.get('width', 0)),
            height=int(elem.get('height', 0)),
            id=int(elem.get('id', 0)),
            visible=elem.get('visible', '1') == '1',
            opacity=float(elem.get('opacity', 1.0)),
            offsetx=float(elem.get('offsetx', 0)),
            offsety=float(elem.get('offsety', 0)),
            tintcolor=elem.get('tintcolor')
        )
        layer.properties = _parse_properties(elem)
        layer.data.tiles = np.zeros((layer.height, layer.width), dtype=np.uint32)

        data_elem = elem.find('data')
        if data_elem is not None:
            if data_elem.find('chunk') is not None:
                print(f"Warning: Infinite map layer '{layer.name}' is not supported, "
                      f"reading it as empty")
            else:
                layer.data = LayerData()
                layer.data.decode_data(data_elem, layer.width, layer.height)

        return layer

    def get_tile_gid(self, x: int, y: int) -> int:
        """Raw GID (flags included) at column x, row y. 0 when out of bounds."""
        if 0 <= x < self.width and 0 <= y < self.height:
            return int(self.data.tiles[y, x])
        return 0

    def iter_cells(self):
        """
        Yield (x, y, raw_gid) for every painted cell in row-major order.

        Row-major order matters: the exporter relies on it to build its
        output in the same order on every run.
        """
        ys, xs = np.nonzero(self.data.tiles)
        for y, x in zip(ys.tolist(), xs.tolist()):
            yield x, y, int(self.data.tiles[y, x])


# =============================================================================
# MAP OBJECT CLASS
# =============================================================================

@dataclass
class MapObject:
    """
    Object in an object layer (or in a tile's collision group).

    ==========================================================================
    OBJECT SHAPES
    ==========================================================================

    rectangle: x, y, width, height (the default, no shape child element)
    ellipse:   <ellipse/> bounding box in x, y, width, height
    point:     <point/> position only
    polygon:   <polygon points="..."/> closed, points relative to (x, y)
    polyline:  <polyline points="..."/> open, points relative to (x, y)
    text:      <text>...</text>
    tile:      'gid' is set, (x, y) is the BOTTOM-left corner

    ==========================================================================
    """
    id: int
    name: str = ""
    type: str = ""                                   # Object class
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    rotation: float = 0                              # Degrees, clockwise
    gid: Optional[int] = None                        # Raw GID, flags included
    visible: bool = True
    shape: str = "rectangle"
    points: List[Tuple[float, float]] = field(default_factory=list)
    properties: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'MapObject':
        obj = cls(
            id=int(elem.get('id', 0)),
            name=elem.get('name', ''),
            type=elem.get('class', elem.get('type', '')),
            x=float(elem.get('x', 0)),
            y=float(elem.get('y', 0)),
            width=float(elem.get('width', 0)),
            height=float(elem.get('height', 0)),
            rotation=float(elem.get('rotation', 0)),
            visible=elem.get('visible', '1') == '1'
        )

        # GID only present for tile objects
        if elem.get('gid'):
            obj.gid = int(elem.get('gid'))
            obj.shape = "tile"

        # -----------------------------------------------------------------
        # SHAPE DETECTION
        # -----------------------------------------------------------------
        if elem.find('ellipse') is not None:
            obj.shape = "ellipse"
        elif elem.find('point') is not None:
            obj.shape = "point"
        elif elem.find('text') is not None:
            obj.shape = "text"
        elif elem.find('polygon') is not None:
            obj.shape = "polygon"
            obj.points = _parse_points(elem.find('polygon').get('points', ''))
        elif elem.find('polyline') is not None:
            obj.shape = "polyline"
            obj.points = _parse_points(elem.find('polyline').get('points', ''))

        obj.properties = _parse_properties(elem)
        return obj


# =============================================================================
# OBJECT GROUP CLASS
# =============================================================================

@dataclass
class ObjectGroup:
    """Object layer - contains vector objects, kept in file order."""
    name: str = ""
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    tintcolor: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    objects: List[MapObject] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ObjectGroup':
        group = cls(
            name=elem.get('name', ''),
            id=int(elem.get('id', 0)),
            visible=elem.get('visible', '1') == '1',
            opacity=float(elem.get('opacity', 1.0)),
            offsetx=float(elem.get('offsetx', 0)),
            offsety=float(elem.get('offsety', 0)),
            tintcolor=elem.get('tintcolor')
        )
        group.properties = _parse_properties(elem)

        for obj_elem in elem.findall('object'):
            group.objects.append(MapObject.from_xml(obj_elem))

        return group


# =============================================================================
# LAYER GROUP CLASS
# =============================================================================

@dataclass
class LayerGroup:
    """
    Group of layers - a folder containing other layers.

    Layers:
    ├── Background (group)
    │   ├── Sky
    │   └── Mountains
    └── Gameplay (group)
        ├── Ground
        └── Zones

    Groups can be nested (groups within groups).
    """
    name: str
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    tintcolor: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    layers: List[Union['TileLayer', 'ObjectGroup', 'LayerGroup']] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerGroup':
        group = cls(
            name=elem.get('name', ''),
            id=int(elem.get('id', 0)),
            visible=elem.get('visible', '1') == '1',
            opacity=float(elem.get('opacity', 1.0)),
            offsetx=float(elem.get('offsetx', 0)),
            offsety=float(elem.get('offsety', 0)),
            tintcolor=elem.get('tintcolor')
        )
        group.properties = _parse_properties(elem)
        group.layers = _parse_layers(elem)
        return group


def _parse_layers(elem: ET.Element) -> List[Union[TileLayer, ObjectGroup, LayerGroup]]:
    """Read the layer children of <map> or <group>, preserving document order."""
    layers = []
    for child in elem:
        if child.tag == 'layer':
            layers.append(TileLayer.from_xml(child))
        elif child.tag == 'objectgroup':
            layers.append(ObjectGroup.from_xml(child))
        elif child.tag == 'group':
            # Recursive: group within group
            layers.append(LayerGroup.from_xml(child))
        elif child.tag == 'imagelayer':
            print(f"Warning: Image layer '{child.get('name', '')}' is not supported, skipping")
    return layers


# =============================================================================
# TILED MAP CLASS (Main Entry Point)
# =============================================================================

@dataclass
class TiledMap:
    """
    Complete Tiled map - the root object for TMX files.

    ==========================================================================
    USAGE
    ==========================================================================

        map_data = TiledMap.load("level1.tmx")
        print(f"Map size: {map_data.width}x{map_data.height}")

        for tileset in map_data.used_tilesets():
            print(tileset.name)

    ==========================================================================
    """
    version: str = "1.10"
    tiledversion: str = ""
    orientation: str = "orthogonal"
    renderorder: str = "right-down"
    width: int = 0
    height: int = 0
    tilewidth: int = 0
    tileheight: int = 0
    infinite: bool = False
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[Union[TileLayer, ObjectGroup, LayerGroup]] = field(default_factory=list)
    filepath: Optional[Path] = None

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'TiledMap':
        """
        Load a TMX file from disk.

        Raises:
        -------
        FileNotFoundError : If TMX file doesn't exist
        xml.etree.ElementTree.ParseError : If XML is malformed
        """
        filepath = Path(filepath).resolve()
        root = ET.parse(filepath).getroot()

        map_obj = cls(
            version=root.get('version', '1.0'),
            tiledversion=root.get('tiledversion', ''),
            orientation=root.get('orientation', 'orthogonal'),
            renderorder=root.get('renderorder', 'right-down'),
            width=int(root.get('width', 0)),
            height=int(root.get('height', 0)),
            tilewidth=int(root.get('tilewidth', 0)),
            tileheight=int(root.get('tileheight', 0)),
            infinite=root.get('infinite', '0') == '1',
            filepath=filepath
        )
        map_obj.properties = _parse_properties(root)

        if map_obj.infinite:
            print(f"Warning: {filepath.name} is an infinite map, tile layers will be empty")

        # -----------------------------------------------------------------
        # PARSE TILESETS
        # -----------------------------------------------------------------
        for tileset_elem in root.findall('tileset'):
            firstgid = int(tileset_elem.get('firstgid'))
            source = tileset_elem.get('source')

            if source:
                tsx_path = filepath.parent / source
                try:
                    tileset = Tileset.load(tsx_path, firstgid)
                    tileset.source = source
                except FileNotFoundError:
                    # TSX file missing - create placeholder
                    print(f"Warning: External tileset not found: {tsx_path}")
                    tileset = Tileset(
                        firstgid=firstgid,
                        name=Path(source).stem,
                        tilewidth=map_obj.tilewidth,
                        tileheight=map_obj.tileheight,
                        source=source,
                        base_dir=filepath.parent
                    )
            else:
                tileset = Tileset.from_xml(tileset_elem, firstgid)
                tileset.base_dir = filepath.parent

            map_obj.tilesets.append(tileset)

        map_obj.layers = _parse_layers(root)
        return map_obj

    def get_tileset_for_gid(self, gid: int) -> Optional[Tileset]:
        """
        Find which tileset contains a given GID (flags are stripped first).

        A GID belongs to the tileset with the largest firstgid <= gid.
        """
        gid = int(gid) & GID_MASK
        if gid == 0:
            return None
        for i in range(len(self.tilesets) - 1, -1, -1):
            if gid >= self.tilesets[i].firstgid:
                return self.tilesets[i]
        return None

    def get_layer_by_name(self, name: str) -> Optional[Union[TileLayer, ObjectGroup, LayerGroup]]:
        """Find a layer by name (searches recursively through groups)."""
        def search_layers(layers):
            for layer in layers:
                if layer.name == name:
                    return layer
                if isinstance(layer, LayerGroup):
                    result = search_layers(layer.layers)
                    if result:
                        return result
            return None

        return search_layers(self.layers)

    def get_all_layers_flat(self) -> List[Union[TileLayer, ObjectGroup]]:
        """All TileLayer and ObjectGroup objects, groups expanded recursively."""
        result = []

        def flatten(layers):
            for layer in layers:
                if isinstance(layer, LayerGroup):
                    flatten(layer.layers)
                else:
                    result.append(layer)

        flatten(self.layers)
        return result

    def used_tilesets(self) -> List[Tileset]:
        """
        Tilesets referenced by at least one painted cell or tile object.

        Returned in the map's tileset order, so the result is stable
        between runs.
        """
        used_gids = set()
        for layer in self.get_all_layers_flat():
            if isinstance(layer, TileLayer):
                gids = np.unique(layer.data.tiles & GID_MASK)
                used_gids.update(int(g) for g in gids if g)
            else:
                for obj in layer.objects:
                    if obj.gid:
                        used_gids.add(obj.gid & GID_MASK)

        used = []
        for tileset in self.tilesets:
            if any(self.get_tileset_for_gid(gid) is tileset for gid in used_gids):
                used.append(tileset)
        return used
