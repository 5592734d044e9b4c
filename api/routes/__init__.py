"""API route handlers."""

from api.routes import allocations, distributions, health

__all__ = ["allocations", "distributions", "health"]
