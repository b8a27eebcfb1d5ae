"""HTTP adapter"""

from ticker_backend.api.app import create_app

__all__ = ["create_app"]
