"""
Output node tree

=============================================================================
ONE NODE RECORD, MANY NODE KINDS
=============================================================================

Godot's node classes form a deep hierarchy (Node -> CanvasItem -> Node2D
-> CollisionObject2D -> Area2D). The exporter doesn't mirror it. Every
node is the same record:

    Node(name="Zone", type="Area2D", properties={...})

'type' is the Godot class name written to the file, and 'properties'
holds whatever that class needs (position, collision_layer, shape...).
The exporter picks the properties per node kind when it builds the node.

=============================================================================
OWNERS AND PATHS
=============================================================================

Every node except the scene root has exactly one owner. Nodes whose owner
is None hang directly under the scene root. The parent path written to
the file is the chain of owner names:

    [node name="Map" type="Node2D"]                          (scene root)
    [node name="Zone" type="Area2D" parent="."]               owner None
    [node name="CollisionShape2D" ... parent="Zone"]          owner Zone
    [node name="Marker" type="Node2D" parent="Zone/CollisionShape2D"]

Owners are held by weak reference: the tree's registration list owns the
nodes, a node only points back up.

=============================================================================
"""

import re
import weakref
from typing import Any, Dict, List, Optional

from ..errors import StructuralError

INVALID_NAME_CHARS = re.compile(r'[.:@/"%]')


def sanitize_name(name: str) -> str:
    """Replace characters Godot refuses in node names."""
    return INVALID_NAME_CHARS.sub('_', name.strip())


class Node:
    """A node of the exported scene."""

    def __init__(self, name: str, type: Optional[str] = "Node2D",
                 owner: Optional['Node'] = None,
                 groups: Optional[List[str]] = None,
                 properties: Optional[Dict[str, Any]] = None,
                 meta: Optional[Dict[str, Any]] = None,
                 instance=None):
        # type is None for instanced scenes: Godot takes it from the scene
        self.type = type
        self.name = sanitize_name(name or "") or (type or "Node")
        self._owner = None
        self.owner = owner
        self.groups: List[str] = list(groups or [])
        self.properties: Dict[str, Any] = dict(properties or {})
        self.meta: Dict[str, Any] = dict(meta or {})
        self.instance = instance
        self.children: List[Node] = []

    @property
    def owner(self) -> Optional['Node']:
        return self._owner() if self._owner is not None else None

    @owner.setter
    def owner(self, value: Optional['Node']):
        self._owner = weakref.ref(value) if value is not None else None

    @property
    def script(self):
        return self.properties.get("script")

    def __repr__(self):
        return f"Node(name={self.name!r}, type={self.type!r})"


class NodeTree:
    """
    Scene root plus every node registered under it, in registration order.

    Registration order is also emission order, and parents are always
    registered before their children, so the file is valid for Godot.
    """

    def __init__(self, root: Node):
        self.root = root
        self.nodes: List[Node] = []
        self._registered = {id(root)}

    def register_node(self, parent: Optional[Node], node: Node) -> Node:
        """
        Attach 'node' under 'parent' (None or the root: directly under the
        scene root) and make its name unique among its siblings.

        Raises:
        -------
        StructuralError : parent isn't part of this tree, or node already is
        """
        if id(node) in self._registered:
            raise StructuralError(f"Node '{node.name}' is already registered")

        if parent is self.root:
            parent = None
        if parent is not None and id(parent) not in self._registered:
            raise StructuralError(
                f"Parent '{parent.name}' of node '{node.name}' is not part of the scene"
            )

        siblings = parent.children if parent is not None else self.root.children
        node.name = self._unique_name(siblings, node.name)
        node.owner = parent

        siblings.append(node)
        self.nodes.append(node)
        self._registered.add(id(node))
        return node

    @staticmethod
    def _unique_name(siblings: List[Node], name: str) -> str:
        """
        'Area2D' stays 'Area2D' if free. Otherwise take the highest numeric
        suffix among 'Area2D' and 'Area2D_<n>' siblings and add one.
        """
        suffixed = re.compile(re.escape(name) + r'_(\d+)')
        highest = None
        for sibling in siblings:
            if sibling.name == name:
                highest = max(highest or 0, 0)
                continue
            match = suffixed.fullmatch(sibling.name)
            if match:
                highest = max(highest or 0, int(match.group(1)))

        if highest is None:
            return name
        return f"{name}_{highest + 1}"

    def get_path(self, node: Node) -> str:
        """
        Parent path of 'node' as written in its [node] header.

        Raises:
        -------
        StructuralError : the owner chain loops back on itself
        """
        names = []
        seen = {id(node)}
        owner = node.owner
        while owner is not None:
            if id(owner) in seen:
                raise StructuralError(f"Owner cycle detected above node '{node.name}'")
            seen.add(id(owner))
            names.append(owner.name)
            owner = owner.owner

        if not names:
            return "."
        return "/".join(reversed(names))
