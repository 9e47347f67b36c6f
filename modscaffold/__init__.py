"""modscaffold -- phased generator for server-side API modules."""

__version__ = "0.1.0"
