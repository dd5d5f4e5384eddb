"""
API Routes Package
"""

from plancouncil.api.routes import health, planner, plans

__all__ = ["health", "planner", "plans"]
