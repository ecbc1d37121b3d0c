"""Collectibles domain - payment schedules and paired collectible/invoice records"""

from .router import router
from .service import CollectibleService

__all__ = ["CollectibleService", "router"]
