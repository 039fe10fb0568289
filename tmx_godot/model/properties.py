"""
Typed property bag and property resolver

=============================================================================
PROPERTY PREFIXES
=============================================================================

Tiled custom properties are a flat {name: value} map. The exporter only
reads the ones under the "godot:" namespace, and the rest of the name
says where the value goes:

    godot:node:<key>       written as-is into the node block
                           (godot:node:light_mask = 3  ->  light_mask = 3)
    godot:script           script file attached to the node
    godot:resource:<key>   file referenced as an external resource
    godot:var:<key>        exported script variable
    godot:meta:<key>       entry of the node's __meta__ dictionary
    godot:<key>            exporter setting (groups, z_index, type...)

Anything without the prefix is left for the game to read in Tiled.

PropertyBag.parse() sorts a property map into these slots once, when the
map is read. From then on the exporter works with typed fields instead of
matching prefixes again.

=============================================================================
RESOLVING
=============================================================================

PropertyResolver.resolve() turns the computed properties of one node plus
its bag into the final property map:

    1. node overrides replace computed values
    2. script       -> ExtResource reference (Script)
    3. resources    -> ExtResource references (Resource)
    4. variables    -> copied through
    5. default elision: anything equal to Godot's default is dropped

Resource/file values among the overrides and variables become ExtResource
references. resolve_meta() does the same for the __meta__ entries.

A missing or empty file never stops the export: the registry logs a
warning and the property is left out.

=============================================================================
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..diagnostics import ExportLog
from .defaults import strip_defaults
from .resources import ExternalResourceType, ResourceRegistry
from .values import Color, RawLiteral, Vector2, Vector2i

PREFIX = "godot:"
NODE_PREFIX = "godot:node:"
SCRIPT_KEY = "godot:script"
RESOURCE_PREFIX = "godot:resource:"
VARIABLE_PREFIX = "godot:var:"
META_PREFIX = "godot:meta:"

TRUE_STRINGS = ("true", "1", "yes", "on")


@dataclass(frozen=True)
class ResourcePath:
    """
    A file reference found in a property.

    'base_dir' is set for Tiled 'file' properties, whose paths are relative
    to the file that declares them. Without it 'path' is already a res path.
    """
    path: str
    base_dir: Optional[Path] = None


def convert_value(prop, base_dir: Optional[Path] = None) -> Any:
    """
    Convert a Tiled property to the value the exporter works with.

    Plain values (already converted, or built in code) pass through.
    """
    if not hasattr(prop, 'type') or not hasattr(prop, 'value'):
        return prop

    value = prop.value
    if prop.type == 'class' and isinstance(value, dict):
        if prop.propertytype == 'Vector2':
            return Vector2(float(value.get('x', 0)), float(value.get('y', 0)))
        if prop.propertytype == 'Vector2i':
            return Vector2i(int(value.get('x', 0)), int(value.get('y', 0)))
        if prop.propertytype == 'Resource' or (
                set(value) == {'path'} and isinstance(value['path'], str)):
            return ResourcePath(value.get('path', ''))
        return dict(value)
    if prop.type == 'color':
        return Color.from_hex(value) if value else None
    if prop.type == 'file':
        return ResourcePath(value or '', base_dir if value else None)
    return value


def _as_resource_path(value) -> ResourcePath:
    if isinstance(value, ResourcePath):
        return value
    return ResourcePath('' if value is None else str(value))


@dataclass
class PropertyBag:
    """Tiled properties sorted by destination."""
    overrides: Dict[str, Any] = field(default_factory=dict)
    script: Optional[ResourcePath] = None
    resources: Dict[str, ResourcePath] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, properties: Optional[Mapping[str, Any]],
              base_dir: Optional[Path] = None) -> 'PropertyBag':
        bag = cls()
        for name, prop in (properties or {}).items():
            if not name.startswith(PREFIX):
                continue
            value = convert_value(prop, base_dir)

            if name.startswith(NODE_PREFIX):
                key = name[len(NODE_PREFIX):]
                bag.overrides[key] = RawLiteral(value) if isinstance(value, str) else value
            elif name == SCRIPT_KEY:
                if value:
                    bag.script = _as_resource_path(value)
            elif name.startswith(RESOURCE_PREFIX):
                bag.resources[name[len(RESOURCE_PREFIX):]] = _as_resource_path(value)
            elif name.startswith(VARIABLE_PREFIX):
                bag.variables[name[len(VARIABLE_PREFIX):]] = value
            elif name.startswith(META_PREFIX):
                bag.meta[name[len(META_PREFIX):]] = value
            else:
                bag.settings[name[len(PREFIX):]] = value
        return bag

    def setting(self, key: str, default=None):
        value = self.settings.get(key)
        return default if value is None or value == "" else value

    def flag(self, key: str, default: bool = False) -> bool:
        """Boolean setting. String values "true"/"1"/"yes"/"on" are true."""
        value = self.setting(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        return bool(value)

    def groups(self, key: str = "groups"):
        """Comma-separated group list setting, blanks dropped."""
        raw = self.settings.get(key) or ""
        return [group.strip() for group in str(raw).split(',') if group.strip()]

    def merged(self, other: 'PropertyBag') -> 'PropertyBag':
        """New bag with 'other' entries layered over this one."""
        return PropertyBag(
            overrides={**self.overrides, **other.overrides},
            script=other.script or self.script,
            resources={**self.resources, **other.resources},
            variables={**self.variables, **other.variables},
            meta={**self.meta, **other.meta},
            settings={**self.settings, **other.settings},
        )


class PropertyResolver:
    """Builds final node/resource property maps against one registry."""

    def __init__(self, registry: ResourceRegistry, log: Optional[ExportLog] = None):
        self.registry = registry
        self.log = log or registry.log

    def reference(self, resource_type: ExternalResourceType, value: ResourcePath):
        """Register the file behind 'value'. None when it can't be referenced."""
        path = value.path
        if value.base_dir is not None and path:
            res_path = self.registry.project.to_res_path(value.base_dir / path)
            if res_path is None:
                self.log.warn(f"{path} is outside the Godot project, reference skipped")
                return None
            path = res_path
        return self.registry.register_external(resource_type, path)

    def _copy_values(self, target: Dict[str, Any], values: Mapping[str, Any]):
        """Copy 'values' into 'target', registering file references on the way."""
        for key, value in values.items():
            if isinstance(value, ResourcePath):
                value = self.reference(ExternalResourceType.Resource, value)
                if value is None:
                    continue
            target[key] = value

    def resolve_meta(self, bag: PropertyBag) -> Dict[str, Any]:
        """The bag's __meta__ entries, file references registered."""
        meta: Dict[str, Any] = {}
        self._copy_values(meta, bag.meta)
        return meta

    def resolve(self, type_name: Optional[str], base: Mapping[str, Any],
                bag: PropertyBag) -> Dict[str, Any]:
        properties = dict(base)
        self._copy_values(properties, bag.overrides)

        if bag.script is not None:
            script = self.reference(ExternalResourceType.Script, bag.script)
            if script is not None:
                properties["script"] = script

        for key, path in bag.resources.items():
            resource = self.reference(ExternalResourceType.Resource, path)
            if resource is not None:
                properties[key] = resource

        self._copy_values(properties, bag.variables)

        return strip_defaults(type_name, properties)
