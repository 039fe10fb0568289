import textwrap

import pytest
from PIL import Image

from tmx_godot.diagnostics import ExportLog
from tmx_godot.model.resources import ResourceRegistry
from tmx_godot.project import ProjectPaths


@pytest.fixture
def project_dir(tmp_path):
    """Empty Godot project."""
    (tmp_path / "project.godot").write_text("config_version=5\n")
    return tmp_path


@pytest.fixture
def log():
    return ExportLog(verbose=False)


@pytest.fixture
def registry(project_dir, log):
    return ResourceRegistry(ProjectPaths(project_dir), log)


@pytest.fixture
def write_file(project_dir):
    """Write a text file under the project, dedenting it first."""
    def write(relative_path, content=""):
        path = project_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip(), encoding='utf-8')
        return path
    return write


@pytest.fixture
def write_png(project_dir):
    """
    Write a transparent RGBA image where the listed tiles are painted
    opaque red.
    """
    def write(relative_path, width, height, opaque_tiles=(), tile_size=16):
        path = project_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        image = Image.new('RGBA', (width, height), (0, 0, 0, 0))
        columns = width // tile_size
        for tile_id in opaque_tiles:
            x = (tile_id % columns) * tile_size
            y = (tile_id // columns) * tile_size
            image.paste((255, 0, 0, 255), (x, y, x + tile_size, y + tile_size))
        image.save(path)
        return path
    return write
