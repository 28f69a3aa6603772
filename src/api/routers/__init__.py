"""API routers."""

from api.routers import analysis, api_keys

__all__ = ["analysis", "api_keys"]
