"""
Export configuration

Settings come from two places: the caller (CLI flags or keyword
arguments) and the map itself, through "godot:" properties on the map or
tileset. Map properties win, so a map can carry its own export settings:

    godot:format                    -> format_version
    godot:project_root              -> project_root
    godot:object_layer_containers   -> object_layer_containers
    godot:type                      -> root_type
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union

from .model.properties import PropertyBag


@dataclass
class ExportConfig:
    format_version: int = 3
    project_root: Optional[Union[str, Path]] = None     # None: search for project.godot
    object_layer_containers: bool = False
    root_type: str = "Node2D"
    frame_duration: float = 1.0
    position_decimals: int = 3
    rotation_decimals: int = 6
    verbose: bool = True

    def with_properties(self, bag: PropertyBag) -> 'ExportConfig':
        """Copy of this config with the map's own settings applied."""
        overrides = {}
        if bag.setting("format") is not None:
            overrides["format_version"] = int(bag.setting("format"))
        if bag.setting("project_root") is not None:
            overrides["project_root"] = str(bag.setting("project_root"))
        if bag.setting("object_layer_containers") is not None:
            overrides["object_layer_containers"] = bag.flag("object_layer_containers")
        if bag.setting("type") is not None:
            overrides["root_type"] = str(bag.setting("type"))
        return replace(self, **overrides)
