import pytest

from tmx_manager import TiledMap
from tmx_godot.config import ExportConfig
from tmx_godot.diagnostics import ExportLog
from tmx_godot.export.map_exporter import MapExporter, export_map

TERRAIN_TSX = """
    <?xml version="1.0" encoding="UTF-8"?>
    <tileset version="1.10" name="terrain" tilewidth="16" tileheight="16"
             tilecount="32" columns="8">
     <image source="terrain.png" width="128" height="64"/>
    </tileset>
"""


@pytest.fixture
def terrain(write_file, write_png):
    write_file("tiles/terrain.tsx", TERRAIN_TSX)
    write_png("tiles/terrain.png", 128, 64, opaque_tiles=range(32))
    write_file("tiles/terrain.tres",
               '[gd_resource type="TileSet" uid="uid://terrain1" load_steps=3 format=3]\n')


@pytest.fixture
def make_map(write_file):
    def make(body, tilesets="", width=4, height=4, properties=""):
        return write_file("maps/level.tmx", f"""
            <?xml version="1.0" encoding="UTF-8"?>
            <map version="1.10" orientation="orthogonal" width="{width}" height="{height}"
                 tilewidth="16" tileheight="16" infinite="0">
             {properties}
             {tilesets}
             {body}
            </map>
        """)
    return make


def export(tmx_path, log=None, **config):
    config.setdefault("verbose", False)
    exporter = MapExporter(TiledMap.load(tmx_path), tmx_path.with_suffix('.tscn'),
                           ExportConfig(**config), log or ExportLog(verbose=False))
    return exporter.build()


ZONE_LAYER = """
    <objectgroup id="1" name="Objects">
     <object id="1" name="Zone" x="0" y="0" width="32" height="32"/>
    </objectgroup>
"""


# =============================================================================
# OBJECT LAYERS
# =============================================================================

def test_single_rectangle_zone(project_dir, make_map):
    text = export(make_map(ZONE_LAYER))

    assert text == (
        '[gd_scene load_steps=2 format=3]\n'
        '\n'
        '[sub_resource type="RectangleShape2D" id="0"]\n'
        'size = Vector2(32, 32)\n'
        '\n'
        '[node name="level" type="Node2D"]\n'
        '\n'
        '[node name="Zone" type="Area2D" parent="."]\n'
        'position = Vector2(16, 16)\n'
        '\n'
        '[node name="CollisionShape2D" type="CollisionShape2D" parent="Zone"]\n'
        'shape = SubResource("0")\n'
    )


def test_export_is_deterministic(project_dir, make_map, terrain):
    path = make_map(
        ZONE_LAYER + ZONE_LAYER.replace('id="1"', 'id="2"'),
        tilesets='<tileset firstgid="1" source="../tiles/terrain.tsx"/>',
    )
    assert export(path) == export(path)


def test_duplicate_names_are_suffixed(project_dir, make_map):
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Zone" x="0" y="0" width="16" height="16"/>
         <object id="2" name="Zone" x="16" y="0" width="16" height="16"/>
        </objectgroup>
    """))
    assert '[node name="Zone" type="Area2D" parent="."]' in text
    assert '[node name="Zone_1" type="Area2D" parent="."]' in text
    assert '[node name="CollisionShape2D" type="CollisionShape2D" parent="Zone_1"]' in text
    assert 'shape = SubResource("1")' in text


def test_rotated_rectangle(project_dir, make_map):
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Beam" x="0" y="0" width="32" height="16" rotation="90"/>
        </objectgroup>
    """))
    assert "position = Vector2(-8, 16)\nrotation = 1.570796\n" in text


def test_object_settings(project_dir, make_map, write_file):
    write_file("scripts/door.gd")
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Door" x="0" y="0" width="16" height="16">
          <properties>
           <property name="godot:type" value="StaticBody2D"/>
           <property name="godot:collision_layer" type="int" value="4"/>
           <property name="godot:z_index" type="int" value="2"/>
           <property name="godot:groups" value="doors, interactive"/>
           <property name="godot:shape_groups" value="hitbox"/>
           <property name="godot:node:light_mask" type="int" value="3"/>
           <property name="godot:script" value="res://scripts/door.gd"/>
           <property name="godot:var:locked" type="bool" value="true"/>
           <property name="godot:meta:kind" value="trap"/>
           <property name="notes" value="ignored"/>
          </properties>
         </object>
        </objectgroup>
    """))

    assert '[ext_resource type="Script" path="res://scripts/door.gd" id="0"]' in text
    assert (
        '[node name="Door" type="StaticBody2D" parent="." groups=["doors", "interactive"]]\n'
        'position = Vector2(8, 8)\n'
        'z_index = 2\n'
        'collision_layer = 4\n'
        'light_mask = 3\n'
        'script = ExtResource("0")\n'
        'locked = true\n'
        '__meta__ = {\n'
        '"kind": "trap"\n'
        '}\n'
    ) in text
    assert '[node name="CollisionShape2D" type="CollisionShape2D" parent="Door" groups=["hitbox"]]' in text
    assert "notes" not in text


def test_missing_script_is_skipped_with_warning(project_dir, make_map):
    log = ExportLog(verbose=False)
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Door" x="0" y="0" width="16" height="16">
          <properties><property name="godot:script" value="scripts/missing.gd"/></properties>
         </object>
        </objectgroup>
    """), log=log)
    assert "script" not in text
    assert "ext_resource" not in text
    assert log.warning_count == 1


def test_ellipse_becomes_circle(project_dir, make_map):
    log = ExportLog(verbose=False)
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Ring" x="0" y="0" width="20" height="20"><ellipse/></object>
         <object id="2" name="Oval" x="0" y="0" width="30" height="10"><ellipse/></object>
        </objectgroup>
    """), log=log)
    assert '[sub_resource type="CircleShape2D" id="0"]\n\n' in text  # radius 10 is the default
    assert '[sub_resource type="CircleShape2D" id="1"]\nradius = 15\n' in text
    assert log.warning_count == 1


def test_polygon_and_polyline(project_dir, make_map):
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Wall" x="10" y="20"><polygon points="0,0 32,0 16,16"/></object>
         <object id="2" name="Fence" x="0" y="0"><polyline points="0,0 10,0"/></object>
        </objectgroup>
    """))
    assert (
        '[node name="Wall" type="Area2D" parent="."]\n'
        'position = Vector2(10, 20)\n'
        '\n'
        '[node name="CollisionPolygon2D" type="CollisionPolygon2D" parent="Wall"]\n'
        'polygon = PackedVector2Array(0, 0, 32, 0, 16, 16)\n'
    ) in text
    assert (
        '[node name="CollisionPolygon2D" type="CollisionPolygon2D" parent="Fence"]\n'
        'build_mode = 1\n'
        'polygon = PackedVector2Array(0, 0, 10, 0)\n'
    ) in text


def test_point_and_text_objects(project_dir, make_map):
    log = ExportLog(verbose=False)
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" x="4.5" y="8"><point/></object>
         <object id="2" name="Sign" x="0" y="0" width="10" height="10"><text>Hi</text></object>
        </objectgroup>
    """), log=log)
    assert '[node name="Point" type="Node2D" parent="."]\nposition = Vector2(4.5, 8)\n' in text
    assert "Sign" not in text
    assert log.warning_count == 1


def test_instance_property(project_dir, make_map, write_file):
    write_file("prefabs/chest.tscn", '[gd_scene uid="uid://chest" format=3]\n')
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Chest" x="0" y="0"><point/>
          <properties><property name="godot:instance" value="prefabs/chest.tscn"/></properties>
         </object>
        </objectgroup>
    """))
    assert '[ext_resource type="PackedScene" uid="uid://chest" path="res://prefabs/chest.tscn" id="0"]' in text
    assert '[node name="Chest" parent="." instance=ExtResource("0")]' in text


def test_flattened_object_layer_passes_groups_and_z_index(project_dir, make_map):
    text = export(make_map("""
        <objectgroup id="1" name="Objects" offsetx="4">
         <properties>
          <property name="godot:groups" value="zones"/>
          <property name="godot:z_index" type="int" value="3"/>
         </properties>
         <object id="1" name="Zone" x="0" y="0" width="8" height="8"/>
        </objectgroup>
    """))
    assert (
        '[node name="Zone" type="Area2D" parent="." groups=["zones"]]\n'
        'position = Vector2(8, 4)\n'
        'z_index = 3\n'
    ) in text
    assert '[node name="CollisionShape2D" type="CollisionShape2D" parent="Zone"]\n' in text


def test_object_layer_containers(project_dir, make_map):
    text = export(make_map(ZONE_LAYER), object_layer_containers=True)
    assert '[node name="Objects" type="Node2D" parent="."]' in text
    assert '[node name="Zone" type="Area2D" parent="Objects"]' in text
    assert 'parent="Objects/Zone"' in text


def test_object_layer_containers_from_map_property(project_dir, make_map):
    text = export(make_map(ZONE_LAYER, properties="""
        <properties>
         <property name="godot:object_layer_containers" type="bool" value="true"/>
         <property name="godot:name" value="Level1"/>
        </properties>
    """))
    assert '[node name="Level1" type="Node2D"]' in text
    assert '[node name="Zone" type="Area2D" parent="Objects"]' in text


def test_group_layers_become_containers(project_dir, make_map):
    text = export(make_map(f"""
        <group id="5" name="World">
         <properties><property name="godot:z_index" type="int" value="1"/></properties>
         {ZONE_LAYER}
        </group>
    """))
    assert '[node name="World" type="Node2D" parent="."]\nz_index = 1\n' in text
    assert '[node name="Zone" type="Area2D" parent="World"]' in text
    assert 'parent="World/Zone"' in text


# =============================================================================
# TILE LAYERS AND TILE OBJECTS
# =============================================================================

TERRAIN_REF = '<tileset firstgid="1" source="../tiles/terrain.tsx"/>'


def test_tile_layer(project_dir, make_map, terrain):
    text = export(make_map("""
        <layer id="1" name="Ground" width="4" height="2" opacity="0.5">
         <data encoding="csv">1,2,0,0,0,0,0,10</data>
        </layer>
    """, tilesets=TERRAIN_REF))

    cells = [0, 0] + [0] * 12 + [1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0] + [3, 0, 1, 0, 0, 0, 1, 0, 1, 0, 0, 0]
    assert '[ext_resource type="TileSet" uid="uid://terrain1" path="res://tiles/terrain.tres" id="0"]' in text
    assert (
        '[node name="Ground" type="TileMapLayer" parent="."]\n'
        'modulate = Color(1, 1, 1, 0.5)\n'
        f'tile_map_data = PackedByteArray({", ".join(str(b) for b in cells)})\n'
        'tile_set = ExtResource("0")\n'
    ) in text


def test_flipped_tile_uses_alternative_id(project_dir, make_map, terrain):
    flipped = 1 | 0x80000000
    text = export(make_map(f"""
        <layer id="1" name="Ground" width="1" height="1">
         <data encoding="csv">{flipped}</data>
        </layer>
    """, tilesets=TERRAIN_REF, width=1, height=1))
    assert "tile_map_data = PackedByteArray(0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 16)" in text


def test_ignored_tile_layer(project_dir, make_map, terrain):
    text = export(make_map("""
        <layer id="1" name="Ground" width="1" height="1">
         <properties><property name="godot:ignore" type="bool" value="true"/></properties>
         <data encoding="csv">1</data>
        </layer>
    """, tilesets=TERRAIN_REF, width=1, height=1))
    assert "TileMapLayer" not in text


def test_one_layer_per_tileset(project_dir, make_map, terrain, write_file):
    write_file("tiles/props.tsx", TERRAIN_TSX.replace('name="terrain"', 'name="props"'))
    write_file("tiles/props.tres", '[gd_resource type="TileSet" load_steps=3 format=3]\n')
    text = export(make_map("""
        <layer id="1" name="Ground" width="2" height="1">
         <data encoding="csv">1,33</data>
        </layer>
    """, tilesets=TERRAIN_REF + '<tileset firstgid="33" source="../tiles/props.tsx"/>',
         width=2, height=1))
    assert '[node name="Ground_terrain" type="TileMapLayer" parent="."]' in text
    assert '[node name="Ground_props" type="TileMapLayer" parent="."]' in text
    assert 'tile_set = ExtResource("1")' in text


def test_missing_tileset_resource_is_soft(project_dir, make_map, terrain):
    (project_dir / "tiles" / "terrain.tres").unlink()
    log = ExportLog(verbose=False)
    text = export(make_map("""
        <layer id="1" name="Ground" width="1" height="1">
         <data encoding="csv">1</data>
        </layer>
    """, tilesets=TERRAIN_REF, width=1, height=1), log=log)
    assert '[node name="Ground" type="TileMapLayer" parent="."]' in text
    assert "tile_set" not in text
    assert log.warning_count == 1


def test_tile_object_becomes_sprite(project_dir, make_map, terrain):
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Chest" gid="10" x="32" y="48" width="16" height="16"/>
        </objectgroup>
    """, tilesets=TERRAIN_REF))
    assert '[ext_resource type="Texture2D" path="res://tiles/terrain.png" id="1"]' in text
    assert (
        '[node name="Chest" type="Sprite2D" parent="."]\n'
        'position = Vector2(40, 40)\n'
        'texture = ExtResource("1")\n'
        'region_enabled = true\n'
        'region_rect = Rect2(16, 16, 16, 16)\n'
    ) in text


# =============================================================================
# FILES
# =============================================================================

def test_export_map_writes_next_to_the_map(project_dir, make_map):
    path = make_map(ZONE_LAYER)
    output = export_map(path, config=ExportConfig(verbose=False))
    assert output == path.with_suffix('.tscn')
    assert output.read_text().startswith("[gd_scene load_steps=2 format=3]\n")


def test_file_properties_become_external_resources(project_dir, make_map, write_file):
    write_file("maps/icon.png")
    write_file("maps/hit.wav")
    log = ExportLog(verbose=False)
    text = export(make_map("""
        <objectgroup id="1" name="Objects">
         <object id="1" name="Chest" x="0" y="0"><point/>
          <properties>
           <property name="godot:meta:icon" type="file" value="icon.png"/>
           <property name="godot:meta:lost" type="file" value="nope.png"/>
           <property name="godot:node:sound" type="file" value="hit.wav"/>
          </properties>
         </object>
        </objectgroup>
    """), log=log)

    assert (
        '[ext_resource type="Resource" path="res://maps/hit.wav" id="0"]\n'
        '[ext_resource type="Resource" path="res://maps/icon.png" id="1"]\n'
    ) in text
    assert (
        '[node name="Chest" type="Node2D" parent="."]\n'
        'sound = ExtResource("0")\n'
        '__meta__ = {\n'
        '"icon": ExtResource("1")\n'
        '}\n'
    ) in text
    assert log.warning_count == 1


def test_string_false_keeps_object_layers_flat(project_dir, make_map):
    text = export(make_map(ZONE_LAYER, properties="""
        <properties>
         <property name="godot:object_layer_containers" value="false"/>
        </properties>
    """))
    assert '[node name="Zone" type="Area2D" parent="."]' in text
    assert 'name="Objects"' not in text
