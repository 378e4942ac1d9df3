class HueError(Exception):
    """Base class for errors raised by the hue package."""


class InvalidParameter(HueError, ValueError):
    """Raised when clustering or sampling arguments are out of range."""


class ClusteringCancelled(HueError, RuntimeError):
    """Raised when a caller cancels a clustering run between attempts or iterations."""
