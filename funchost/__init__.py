"""Register, build and run uploaded programs over HTTP, storing them on disk."""

__version__ = "0.1.0"