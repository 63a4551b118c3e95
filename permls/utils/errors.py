#

__all__ = [
    "PermLSError",
    "CapacityError",
    "RangeError",
    "InvariantError",
    "PreconditionError",
]


class PermLSError(Exception):
    """Base class of all errors raised by the search core."""


class CapacityError(PermLSError, ValueError):
    """The requested cost range exceeds every available numeric representation."""


class RangeError(PermLSError, ValueError):
    """A single cost value does not fit into the numeric kind of an edge-weight store."""


class InvariantError(PermLSError, RuntimeError):
    """A move or operator produced something that is not a permutation."""


class PreconditionError(PermLSError, IndexError):
    """Invalid node index, position or ordering passed to the core."""
