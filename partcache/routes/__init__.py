"""API routes package."""

from partcache.routes.part_routes import router as part_router

__all__ = ["part_router"]
