"""rfpdesk HTTP JSON API (FastAPI)."""

from rfpdesk.api.app import create_app

__all__ = ["create_app"]
