"""API v1 routers."""

from salvage_auction.api.v1 import auctions, catalogs, scheduler, users, vehicles, ws

__all__ = ["auctions", "catalogs", "scheduler", "users", "vehicles", "ws"]
