import pytest

from tmx_manager import Tileset
from tmx_godot.config import ExportConfig
from tmx_godot.diagnostics import ExportLog
from tmx_godot.errors import ExportError
from tmx_godot.export.tileset_exporter import TilesetExporter, export_tileset, variant_type
from tmx_godot.model.values import Color, Vector2


def tileset_xml(tiles="", properties="", image='<image source="terrain.png" width="64" height="32"/>'):
    return f"""
        <?xml version="1.0" encoding="UTF-8"?>
        <tileset version="1.10" name="terrain" tilewidth="16" tileheight="16"
                 tilecount="8" columns="4">
         {properties}
         {image}
         {tiles}
        </tileset>
    """


ANIMATED_TILES = """
    <tile id="0">
     <animation>
      <frame tileid="0" duration="500"/>
      <frame tileid="1" duration="500"/>
      <frame tileid="2" duration="500"/>
     </animation>
    </tile>
    <tile id="5">
     <properties>
      <property name="godot:custom_data:coins" type="int" value="5"/>
     </properties>
     <objectgroup draworder="index" id="2">
      <object id="1" x="0" y="8" width="16" height="8"/>
     </objectgroup>
    </tile>
    <tile id="6" class="Marker"/>
"""


@pytest.fixture
def terrain_png(write_png):
    # 4x2 atlas, tiles 4, 6 and 7 fully transparent
    return write_png("tiles/terrain.png", 64, 32, opaque_tiles=[0, 1, 2, 3, 5])


def build(tsx_path, log=None):
    exporter = TilesetExporter(Tileset.load(tsx_path), tsx_path.with_suffix('.tres'),
                               ExportConfig(verbose=False), log or ExportLog(verbose=False))
    return exporter.build()


def test_full_tileset(project_dir, write_file, terrain_png):
    text = build(write_file("tiles/terrain.tsx", tileset_xml(ANIMATED_TILES)))

    assert text == (
        '[gd_resource type="TileSet" load_steps=3 format=3]\n'
        '\n'
        '[ext_resource type="Texture2D" path="res://tiles/terrain.png" id="0"]\n'
        '\n'
        '[sub_resource type="TileSetAtlasSource" id="0"]\n'
        'resource_name = "terrain"\n'
        'texture = ExtResource("0")\n'
        '0:0/animation_columns = 3\n'
        '0:0/animation_speed = 2\n'
        '0:0/animation_frame_0/duration = 1\n'
        '0:0/animation_frame_1/duration = 1\n'
        '0:0/animation_frame_2/duration = 1\n'
        '0:0/0 = 0\n'
        '3:0/0 = 0\n'
        '1:1/0 = 0\n'
        '1:1/0/physics_layer_0/polygon_0/points = PackedVector2Array(-8, 0, 8, 0, 8, 8, -8, 8)\n'
        '1:1/0/custom_data_0 = 5\n'
        '2:1/0 = 0\n'
        '\n'
        '[resource]\n'
        'physics_layer_0/collision_layer = 1\n'
        'custom_data_layer_0/name = "coins"\n'
        'custom_data_layer_0/type = 2\n'
        'sources/0 = SubResource("0")\n'
    )


def test_invalid_animation_is_exported_static(project_dir, write_file, terrain_png):
    log = ExportLog(verbose=False)
    text = build(write_file("tiles/terrain.tsx", tileset_xml("""
        <tile id="3">
         <animation>
          <frame tileid="3" duration="100"/>
          <frame tileid="1" duration="100"/>
         </animation>
        </tile>
    """)), log=log)

    assert "animation" not in text
    assert "1:0/0 = 0\n" in text
    assert "3:0/0 = 0\n" in text
    assert log.warning_count == 1


def test_one_way_collision_and_layers(project_dir, write_file, terrain_png):
    text = build(write_file("tiles/terrain.tsx", tileset_xml(
        properties="""
            <properties>
             <property name="godot:collision_layer" type="int" value="2"/>
             <property name="godot:collision_mask" type="int" value="5"/>
            </properties>
        """,
        tiles="""
            <tile id="1">
             <properties>
              <property name="godot:one_way" type="bool" value="true"/>
             </properties>
             <objectgroup>
              <object id="1" x="0" y="0"><polygon points="0,0 16,0 16,4"/></object>
             </objectgroup>
            </tile>
        """)))

    assert ("1:0/0/physics_layer_0/polygon_0/points = "
            "PackedVector2Array(-8, -8, 8, -8, 8, -4)\n") in text
    assert "1:0/0/physics_layer_0/polygon_0/one_way_collision = true\n" in text
    assert "physics_layer_0/collision_layer = 2\nphysics_layer_0/collision_mask = 5\n" in text


def test_unsupported_collision_shape_warns(project_dir, write_file, terrain_png):
    log = ExportLog(verbose=False)
    text = build(write_file("tiles/terrain.tsx", tileset_xml("""
        <tile id="1">
         <objectgroup>
          <object id="1" x="0" y="0" width="16" height="16"><ellipse/></object>
         </objectgroup>
        </tile>
    """)), log=log)
    assert "physics_layer" not in text
    assert "1:0/0 = 0\n" in text
    assert log.warning_count == 1


def test_isometric_tileset(project_dir, write_file, terrain_png):
    text = build(write_file("tiles/terrain.tsx", tileset_xml(
        tiles='<grid orientation="isometric" width="16" height="16"/>')))
    assert "tile_shape = 1\ntile_layout = 1\n" in text


def test_missing_image_size_is_probed(project_dir, write_file, terrain_png):
    text = build(write_file("tiles/terrain.tsx", tileset_xml(
        image='<image source="terrain.png"/>')))
    assert "1:1/0 = 0\n" in text


def test_collection_tileset_is_fatal(project_dir, write_file):
    path = write_file("tiles/props.tsx", """
        <?xml version="1.0" encoding="UTF-8"?>
        <tileset version="1.10" name="props" tilewidth="16" tileheight="16"
                 tilecount="1" columns="0">
         <tile id="0"><image source="chest.png" width="16" height="16"/></tile>
        </tileset>
    """)
    with pytest.raises(ExportError):
        export_tileset(path, config=ExportConfig(verbose=False))
    assert not path.with_suffix('.tres').exists()


def test_export_tileset_writes_file(project_dir, write_file, terrain_png):
    path = write_file("tiles/terrain.tsx", tileset_xml())
    output = export_tileset(path, config=ExportConfig(verbose=False))
    assert output == path.with_suffix('.tres')
    assert output.read_text().startswith('[gd_resource type="TileSet" load_steps=3 format=3]\n')


@pytest.mark.parametrize("value, expected", [
    (True, 1),
    (5, 2),
    (0.5, 3),
    ("gold", 4),
    (Vector2(1, 2), 5),
    (Color(1, 0, 0, 1), 20),
    (None, 0),
])
def test_variant_type(value, expected):
    assert variant_type(value) == expected


def test_single_column_animation_skips_the_cells_it_plays(project_dir, write_file, write_png):
    write_png("tiles/terrain.png", 64, 32, opaque_tiles=range(8))
    # frames [1, 6] play from the cells of tiles 1 and 5 (straight below tile 1)
    text = build(write_file("tiles/terrain.tsx", tileset_xml("""
        <tile id="1">
         <animation>
          <frame tileid="1" duration="100"/>
          <frame tileid="6" duration="100"/>
         </animation>
        </tile>
    """)))

    assert "1:0/animation_columns = 1\n" in text
    assert "1:0/animation_frame_1/duration = 1\n" in text
    assert "1:1/0 = 0" not in text
    assert "2:1/0 = 0\n" in text
