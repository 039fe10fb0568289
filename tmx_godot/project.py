"""
Godot project paths

=============================================================================
RES:// PATHS
=============================================================================

Godot addresses every file relative to the project root (the directory
holding project.godot):

    /home/me/game/project.godot
    /home/me/game/maps/level1.tscn      ->  res://maps/level1.tscn

Resource paths are stored WITHOUT the "res://" prefix and without leading
slashes; the writer adds "res://" when emitting. A leading slash would
otherwise produce "res:///maps/...", which Godot refuses.

=============================================================================
UIDS
=============================================================================

Godot 4 gives every resource a stable uid ("uid://b3x8...") so references
survive file moves. Where it lives depends on the file kind:

    .tscn / .tres    first line:  [gd_resource type="TileSet" uid="uid://..." ...]
    .png / .wav ...  sidecar:     image.png.import  ->  uid="uid://..."
    .gd (4.4+)       sidecar:     script.gd.uid     ->  uid://...

=============================================================================
"""

import re
from pathlib import Path
from typing import Optional, Union

UID_PATTERN = re.compile(r'uid="(uid://[^"]+)"')
PROJECT_FILE = "project.godot"


def normalize_res_path(path: Union[str, Path]) -> str:
    """'res://a/b', '/a/b', 'a\\b' -> 'a/b'."""
    text = str(path).replace('\\', '/')
    if text.startswith('res://'):
        text = text[len('res://'):]
    return text.lstrip('/')


def find_project_root(start: Path) -> Optional[Path]:
    """Walk up from 'start' until a directory containing project.godot is found."""
    start = Path(start).resolve()
    for directory in [start, *start.parents]:
        if (directory / PROJECT_FILE).is_file():
            return directory
    return None


class ProjectPaths:
    """Converts between filesystem paths and res:// paths for one project."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    @classmethod
    def for_output(cls, output_path: Union[str, Path],
                   project_root: Optional[Union[str, Path]] = None) -> 'ProjectPaths':
        """
        Pick the project root for an output file.

        An explicit root wins (relative roots are taken from the output
        file's directory). Otherwise search upwards for project.godot and
        fall back to the output file's own directory.
        """
        output_dir = Path(output_path).resolve().parent
        if project_root:
            root = Path(project_root)
            if not root.is_absolute():
                root = output_dir / root
            return cls(root)
        return cls(find_project_root(output_dir) or output_dir)

    def to_res_path(self, path: Union[str, Path]) -> Optional[str]:
        """Filesystem path -> res path, or None if it's outside the project."""
        try:
            relative = Path(path).resolve().relative_to(self.root)
        except ValueError:
            return None
        return relative.as_posix()

    def to_fs_path(self, res_path: str) -> Path:
        return self.root / normalize_res_path(res_path)

    def exists(self, res_path: str) -> bool:
        return self.to_fs_path(res_path).is_file()

    def read_uid(self, res_path: str) -> Optional[str]:
        """Stable uid of a project file, or None if it has none yet."""
        file_path = self.to_fs_path(res_path)

        if file_path.suffix in ('.tscn', '.tres'):
            with open(file_path, encoding='utf-8', errors='replace') as handle:
                header = handle.readline()
            match = UID_PATTERN.search(header)
            if match:
                return match.group(1)

        import_file = file_path.with_name(file_path.name + '.import')
        if import_file.is_file():
            match = UID_PATTERN.search(import_file.read_text(encoding='utf-8', errors='replace'))
            if match:
                return match.group(1)

        uid_file = file_path.with_name(file_path.name + '.uid')
        if uid_file.is_file():
            text = uid_file.read_text(encoding='utf-8', errors='replace').strip()
            if text.startswith('uid://'):
                return text

        return None
