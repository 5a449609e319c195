"""classroll: attendance and roster management backed by a remote REST store."""

__version__ = "1.0.0"
