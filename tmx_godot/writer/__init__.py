"""Godot text format writer"""

from .grammar import render_value, render_meta, quote
from .serializer import serialize_scene, serialize_resource

__all__ = ["render_value", "render_meta", "quote", "serialize_scene", "serialize_resource"]
