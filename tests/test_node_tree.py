import pytest

from tmx_godot.errors import StructuralError
from tmx_godot.model.node import Node, NodeTree, sanitize_name


@pytest.fixture
def tree():
    return NodeTree(Node("Map", "Node2D"))


def test_sibling_names_get_numeric_suffixes(tree):
    names = [tree.register_node(None, Node("Area2D", "Area2D")).name for _ in range(3)]
    assert names == ["Area2D", "Area2D_1", "Area2D_2"]


def test_suffix_continues_from_highest_existing(tree):
    tree.register_node(None, Node("Zone", "Area2D"))
    tree.register_node(None, Node("Zone_5", "Area2D"))
    assert tree.register_node(None, Node("Zone", "Area2D")).name == "Zone_6"


def test_names_only_conflict_among_siblings(tree):
    a = tree.register_node(None, Node("A", "Node2D"))
    b = tree.register_node(None, Node("B", "Node2D"))
    first = tree.register_node(a, Node("Shape", "CollisionShape2D"))
    second = tree.register_node(b, Node("Shape", "CollisionShape2D"))
    assert first.name == second.name == "Shape"


def test_prefix_alone_is_not_a_conflict(tree):
    tree.register_node(None, Node("Zone", "Area2D"))
    assert tree.register_node(None, Node("Zo", "Area2D")).name == "Zo"
    assert tree.register_node(None, Node("ZoneB", "Area2D")).name == "ZoneB"


def test_direct_child_of_root_has_dot_path(tree):
    node = tree.register_node(None, Node("Zone", "Area2D"))
    assert tree.get_path(node) == "."


def test_root_passed_as_parent_means_direct_child(tree):
    node = tree.register_node(tree.root, Node("Zone", "Area2D"))
    assert node.owner is None
    assert tree.get_path(node) == "."


def test_nested_path_joins_owner_names(tree):
    world = tree.register_node(None, Node("World", "Node2D"))
    zone = tree.register_node(world, Node("Zone", "Area2D"))
    shape = tree.register_node(zone, Node("CollisionShape2D", "CollisionShape2D"))
    assert tree.get_path(zone) == "World"
    assert tree.get_path(shape) == "World/Zone"


def test_registration_order_is_kept(tree):
    a = tree.register_node(None, Node("A", "Node2D"))
    b = tree.register_node(a, Node("B", "Node2D"))
    c = tree.register_node(None, Node("C", "Node2D"))
    assert tree.nodes == [a, b, c]


def test_owner_cycle_raises(tree):
    a = tree.register_node(None, Node("A", "Node2D"))
    b = tree.register_node(a, Node("B", "Node2D"))
    a.owner = b
    with pytest.raises(StructuralError):
        tree.get_path(b)


def test_unregistered_parent_raises(tree):
    stray = Node("Stray", "Node2D")
    with pytest.raises(StructuralError):
        tree.register_node(stray, Node("Child", "Node2D"))


def test_registering_twice_raises(tree):
    node = tree.register_node(None, Node("A", "Node2D"))
    with pytest.raises(StructuralError):
        tree.register_node(None, node)


def test_invalid_characters_are_replaced():
    assert sanitize_name("door.01/left") == "door_01_left"
    assert Node("a:b@c", "Node2D").name == "a_b_c"


def test_empty_name_falls_back_to_type():
    assert Node("", "Area2D").name == "Area2D"
