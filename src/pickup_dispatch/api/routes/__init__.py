"""Route group exports."""

from . import collections, health, routes, vehicles

__all__ = ["collections", "routes", "vehicles", "health"]
