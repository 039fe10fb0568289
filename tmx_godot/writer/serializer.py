"""
Scene and resource serializer

=============================================================================
DOCUMENT LAYOUT
=============================================================================

One pass, always in the same order:

    [gd_scene load_steps=3 format=3]                    header

    [ext_resource type="TileSet" path="res://a.tres" id="0"]
    [ext_resource type="Script" path="res://b.gd" id="1"]

    [sub_resource type="RectangleShape2D" id="0"]       sub-resources
    size = Vector2(32, 32)

    [node name="Map" type="Node2D"]                     scene root

    [node name="Zone" type="Area2D" parent="."]         nodes, in
    __meta__ = {                                        registration order
    "kind": "trap"
    }

External resource lines are consecutive, every other block is followed by
a blank line. Everything is built in a list of lines and joined at the
end: nothing touches the disk here.

load_steps is 1 + external resources + sub-resources.

=============================================================================
"""

from typing import Any, List, Mapping, Optional

from ..model.defaults import strip_defaults
from ..model.node import Node, NodeTree
from ..model.resources import ExternalResource, ResourceRegistry, SubResource
from .grammar import quote, render_groups, render_meta, render_property

DEFAULT_FORMAT = 3


def external_resource_line(resource: ExternalResource) -> str:
    parts = [f'type="{resource.type.value}"']
    if resource.uid:
        parts.append(f'uid="{resource.uid}"')
    parts.append(f'path="res://{resource.path}"')
    parts.append(f'id="{resource.id}"')
    return f"[ext_resource {' '.join(parts)}]"


def sub_resource_block(resource: SubResource) -> List[str]:
    lines = [f'[sub_resource type="{resource.type.value}" id="{resource.id}"]']
    for key, value in strip_defaults(resource.type.value, resource.properties).items():
        lines.append(render_property(key, value))
    return lines


def node_header(node: Node, parent_path: Optional[str]) -> str:
    parts = [f"name={quote(node.name)}"]
    if node.type:
        parts.append(f"type={quote(node.type)}")
    if parent_path is not None:
        parts.append(f"parent={quote(parent_path)}")
    if node.instance is not None:
        parts.append(f"instance={node.instance.to_godot()}")
    if node.groups:
        parts.append(f"groups={render_groups(node.groups)}")
    return f"[node {' '.join(parts)}]"


def node_block(node: Node, parent_path: Optional[str]) -> List[str]:
    lines = [node_header(node, parent_path)]
    for key, value in node.properties.items():
        lines.append(render_property(key, value))
    if node.meta:
        lines.append(render_meta(node.meta))
    return lines


def _resource_sections(registry: ResourceRegistry) -> List[List[str]]:
    sections = []
    if registry.external:
        sections.append([external_resource_line(r) for r in registry.external])
    for resource in registry.sub:
        sections.append(sub_resource_block(resource))
    return sections


def _join(sections: List[List[str]]) -> str:
    return "\n\n".join("\n".join(lines) for lines in sections) + "\n"


def serialize_scene(tree: NodeTree, registry: ResourceRegistry,
                    format_version: int = DEFAULT_FORMAT) -> str:
    """Render a complete .tscn document."""
    sections = [[f"[gd_scene load_steps={registry.load_steps} format={format_version}]"]]
    sections.extend(_resource_sections(registry))

    sections.append(node_block(tree.root, None))
    for node in tree.nodes:
        sections.append(node_block(node, tree.get_path(node)))

    return _join(sections)


def serialize_resource(resource_type: str, registry: ResourceRegistry,
                       properties: Mapping[str, Any],
                       format_version: int = DEFAULT_FORMAT) -> str:
    """Render a complete .tres document whose main resource is 'resource_type'."""
    header = (f'[gd_resource type="{resource_type}" '
              f'load_steps={registry.load_steps} format={format_version}]')
    sections = [[header]]
    sections.extend(_resource_sections(registry))

    block = ["[resource]"]
    for key, value in strip_defaults(resource_type, dict(properties)).items():
        block.append(render_property(key, value))
    sections.append(block)

    return _join(sections)
