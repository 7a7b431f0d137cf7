# Storage module
"""Persistence services for trade sets and tracker settings."""

from options_tracker.storage.storage import IStorageService, JsonFileStorage
from options_tracker.storage.repository import TradeRepository

__all__ = ["IStorageService", "JsonFileStorage", "TradeRepository"]
