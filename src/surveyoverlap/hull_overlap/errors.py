"""Exceptions raised by the overlap engine.

All of them are local, synchronous failures meant for the immediate
caller; nothing here is retried or treated as fatal by the library.
"""


class HullMethodError(ValueError):
    """Raised when the hull-method selector is not a known strategy."""


class DegenerateGeometryError(ValueError):
    """Raised when the plane or the 2D basis cannot be built.

    Covers a zero plane normal, a line 1 with fewer than two points, and a
    line 1 whose first and last projected points coincide.
    """


class LineSelectorError(ValueError):
    """Raised when a line-scoped accessor gets a selector other than 0 or 1."""


class IntermediateReleasedError(RuntimeError):
    """Raised when asking for an intermediate that is not (or no longer) held."""
