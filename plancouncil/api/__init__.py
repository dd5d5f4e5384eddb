"""
API Module

FastAPI surface over the planning council.
"""

from plancouncil.api.app import create_app

__all__ = ["create_app"]
