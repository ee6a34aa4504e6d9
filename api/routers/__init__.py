"""
Router package for the Program Builder API.

- health: Health check endpoints
- program_builder: Program generation endpoint (/api/program-builder)
"""

from api.routers.health import router as health_router
from api.routers.program_builder import router as program_builder_router

__all__ = [
    "health_router",
    "program_builder_router",
]
