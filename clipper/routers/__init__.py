"""
FastAPI routers for the export service.
"""

from clipper.routers import export, health

__all__ = ["health", "export"]
