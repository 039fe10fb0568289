"""
Fatal export errors.

Anything raised from here aborts the export before the output file is
written. Recoverable problems such as a missing script file are NOT
exceptions: they go to the run's ExportLog instead.
"""


class ExportError(Exception):
    """Base class for errors that abort an export run."""


class StructuralError(ExportError):
    """The node tree violates its invariants (e.g. a cycle in the owner chain)."""


class ResourceRegistrationError(ExportError, TypeError):
    """A resource was registered with the wrong kind of type tag or properties."""
