"""HTTP API of the Car Search service."""

from car_search.api.routes import router

__all__ = ["router"]
