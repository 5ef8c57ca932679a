"""Route group exports."""

from . import health, routes, walk_groups

__all__ = ["routes", "walk_groups", "health"]
