"""HTTP API for the trip conductor."""
from .routes import router

__all__ = ["router"]
