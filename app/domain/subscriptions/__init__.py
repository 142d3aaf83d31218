"""Subscriptions domain - recurring grocery deliveries"""

from .router import router

__all__ = ["router"]
