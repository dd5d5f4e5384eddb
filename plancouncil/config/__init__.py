"""
Configuration Module

Centralized configuration management for plan-council.
"""

from plancouncil.config.settings import (
    ObservabilitySettings,
    PlannerSettings,
    RedisSettings,
    Settings,
    get_settings,
)

__all__ = [
    "ObservabilitySettings",
    "PlannerSettings",
    "RedisSettings",
    "Settings",
    "get_settings",
]
