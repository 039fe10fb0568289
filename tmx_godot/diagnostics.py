"""
Per-run export log

=============================================================================
SOFT ERRORS
=============================================================================

An export never stops for recoverable problems. A missing script file or
a broken animation sequence is reported and the exporter carries on:

    Warning: Script not found: res://scripts/door.gd, reference skipped

The log keeps every warning so callers (and tests) can inspect them after
the run, and prints a short summary at the end.

Each export run creates its own ExportLog.

=============================================================================
USAGE
=============================================================================

    log = ExportLog(verbose=True)
    log.info("Exporting level1.tmx")
    log.warn("Tileset 'terrain' has no image")
    ...
    log.summary()

=============================================================================
"""

import sys
from typing import List


class Colors:
    YELLOW = '\033[93m'
    GREEN = '\033[92m'
    RESET = '\033[0m'


class ExportLog:
    """Collects progress messages and soft errors for one export run."""

    def __init__(self, verbose: bool = True, color: bool = False):
        self.verbose = verbose
        self.color = color
        self.messages: List[str] = []
        self.warnings: List[str] = []

    def info(self, message: str):
        """Progress message. Printed only when verbose."""
        self.messages.append(message)
        if self.verbose:
            print(message)

    def warn(self, message: str):
        """Record a soft error. Always printed to stderr."""
        self.warnings.append(message)
        text = f"Warning: {message}"
        if self.color:
            text = f"{Colors.YELLOW}{text}{Colors.RESET}"
        print(text, file=sys.stderr)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self):
        if not self.verbose:
            return
        if self.warnings:
            print(f"Finished with {len(self.warnings)} warning(s)")
        elif self.color:
            print(f"{Colors.GREEN}Finished without warnings{Colors.RESET}")
        else:
            print("Finished without warnings")
