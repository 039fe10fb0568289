"""
Resource registry: the two id tables of a Godot text resource

=============================================================================
EXTERNAL RESOURCES VS SUB-RESOURCES
=============================================================================

A .tscn/.tres file references other data in two ways:

    [ext_resource type="Script" path="res://door.gd" id="0"]
        A reference to ANOTHER FILE. Registering the same (type, path)
        twice returns the first entry: one file, one id.

    [sub_resource type="RectangleShape2D" id="0"]
    size = Vector2(32, 32)
        An anonymous resource stored INSIDE this file. Never shared:
        two identical rectangles still get two ids.

Both tables number their entries densely from 0 in registration order,
and each table counts independently.

=============================================================================
SCOPE
=============================================================================

The counters live on the registry instance. One registry per export run:
exporting two maps in the same process can't leak ids from one into the
other.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from os import PathLike
from typing import Any, Dict, List, Optional, Tuple

from ..diagnostics import ExportLog
from ..errors import ResourceRegistrationError
from ..project import ProjectPaths, normalize_res_path


class ExternalResourceType(Enum):
    PackedScene = "PackedScene"
    Resource = "Resource"
    Script = "Script"
    Texture = "Texture2D"
    TileSet = "TileSet"


class SubResourceType(Enum):
    RectangleShape2D = "RectangleShape2D"
    CircleShape2D = "CircleShape2D"
    TileSetAtlasSource = "TileSetAtlasSource"


@dataclass
class ExternalResource:
    type: ExternalResourceType
    path: str                       # res path without the "res://" prefix
    id: int
    uid: Optional[str] = None

    def to_godot(self) -> str:
        return f'ExtResource("{self.id}")'


@dataclass
class SubResource:
    type: SubResourceType
    id: int
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_godot(self) -> str:
        return f'SubResource("{self.id}")'


def _coerce_enum(enum_cls, value):
    """Accept an enum member or its string value; anything else is a type error."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if member.value == value or member.name == value:
                return member
    raise ResourceRegistrationError(
        f"{value!r} is not a valid {enum_cls.__name__}"
    )


class ResourceRegistry:
    """
    Allocates external and sub-resource ids for one output file.

    Missing files are soft errors: register_external logs a warning and
    returns None, and the caller leaves the reference out.
    """

    def __init__(self, project: ProjectPaths, log: Optional[ExportLog] = None):
        self.project = project
        self.log = log or ExportLog(verbose=False)
        self.external: List[ExternalResource] = []
        self.sub: List[SubResource] = []
        self._external_index: Dict[Tuple[ExternalResourceType, str], ExternalResource] = {}

    def register_external(self, resource_type, path) -> Optional[ExternalResource]:
        resource_type = _coerce_enum(ExternalResourceType, resource_type)
        if not isinstance(path, (str, PathLike)):
            raise ResourceRegistrationError(
                f"Resource path must be a string, got {path.__class__.__name__}"
            )

        res_path = normalize_res_path(path)
        if not res_path:
            self.log.warn(f"Empty {resource_type.value} path, reference skipped")
            return None

        key = (resource_type, res_path)
        if key in self._external_index:
            return self._external_index[key]

        if not self.project.exists(res_path):
            self.log.warn(f"{resource_type.value} not found: res://{res_path}, reference skipped")
            return None

        resource = ExternalResource(
            type=resource_type,
            path=res_path,
            id=len(self.external),
            uid=self.project.read_uid(res_path)
        )
        self.external.append(resource)
        self._external_index[key] = resource
        self.log.info(f"Adding external resource: {resource_type.value} res://{res_path} (id {resource.id})")
        return resource

    def register_sub(self, resource_type, properties) -> SubResource:
        resource_type = _coerce_enum(SubResourceType, resource_type)
        if not isinstance(properties, dict):
            raise ResourceRegistrationError(
                f"Sub-resource properties must be a dict, got {properties.__class__.__name__}"
            )

        resource = SubResource(type=resource_type, id=len(self.sub), properties=dict(properties))
        self.sub.append(resource)
        return resource

    @property
    def load_steps(self) -> int:
        return 1 + len(self.external) + len(self.sub)
