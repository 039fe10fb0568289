#!/usr/bin/env python3

"""
TMX to Godot exporter

Usage:
    python -m tmx_godot <map.tmx|tileset.tsx> [output] [options]
"""

import argparse
import sys
import xml.etree.ElementTree as ET
from pathlib import Path

from .config import ExportConfig
from .diagnostics import ExportLog
from .errors import ExportError
from .export import export_map, export_tileset


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tmx_godot',
        description='Export Tiled maps to Godot scenes and Tiled tilesets to Godot TileSets',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example:
    python -m tmx_godot maps/level1.tmx

    # Explicit output and project root:
    python -m tmx_godot maps/level1.tmx scenes/level1.tscn --project-root .

    # Tileset:
    python -m tmx_godot tiles/terrain.tsx
        """
    )
    parser.add_argument('input', help='Tiled map (.tmx) or tileset (.tsx)')
    parser.add_argument('output', nargs='?', default=None,
                        help='Output file (default: input with a .tscn/.tres suffix)')
    parser.add_argument('--project-root', default=None,
                        help='Godot project root (default: search upwards for project.godot)')
    parser.add_argument('--format', type=int, default=3,
                        help='Godot text format version')
    parser.add_argument('--containers', action='store_true',
                        help='Export object layers as Node2D containers')
    parser.add_argument('--quiet', action='store_true',
                        help='Only print warnings and errors')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    source_path = Path(args.input)
    if not source_path.exists():
        print(f"Error: File '{source_path}' not found", file=sys.stderr)
        return 1

    config = ExportConfig(
        format_version=args.format,
        project_root=args.project_root,
        object_layer_containers=args.containers,
        verbose=not args.quiet,
    )
    log = ExportLog(verbose=config.verbose, color=sys.stdout.isatty())

    try:
        if source_path.suffix.lower() == '.tsx':
            export_tileset(source_path, args.output, config, log)
        else:
            export_map(source_path, args.output, config, log)
    except (ExportError, ET.ParseError, ValueError, OSError) as e:
        # ValueError: malformed layer data or colors in an otherwise valid XML file
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log.summary()
    return 0


if __name__ == "__main__":
    sys.exit(main())
