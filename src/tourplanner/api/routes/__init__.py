"""Route group exports."""

from . import geocode, health, proximity, tours

__all__ = ["health", "tours", "proximity", "geocode"]
