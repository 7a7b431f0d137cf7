"""Tracker settings and their persistence."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from options_tracker.storage.storage import IStorageService

logger = logging.getLogger(__name__)

SETTINGS_STORAGE_KEY = "tracker_settings"
DATA_DIR_ENV_VAR = "OPTIONS_TRACKER_DATA_DIR"
DEFAULT_CONTRACT_MULTIPLIER = 100


def default_data_dir() -> str:
    """Data directory from the environment, falling back to the home directory."""
    env_dir = os.environ.get(DATA_DIR_ENV_VAR)
    if env_dir:
        return env_dir
    return str(Path.home() / ".options_tracker")


@dataclass
class TrackerSettings:
    """Tracker settings model."""
    executed_only: bool = True  # skip CANCELLED/PENDING trades in position math
    contract_multiplier: int = DEFAULT_CONTRACT_MULTIPLIER  # shares per contract
    data_dir: str = field(default_factory=default_data_dir)
    mark_source_url: Optional[str] = None  # quote endpoint for HttpMarkProvider

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TrackerSettings":
        """Create from dictionary.

        Raises:
            ValueError: If a stored value has the wrong type
        """
        executed_only = data.get("executed_only", True)
        if not isinstance(executed_only, bool):
            raise ValueError(f"executed_only must be true or false, got {executed_only!r}")
        return cls(
            executed_only=executed_only,
            contract_multiplier=int(data.get("contract_multiplier", DEFAULT_CONTRACT_MULTIPLIER)),
            data_dir=data.get("data_dir") or default_data_dir(),
            mark_source_url=data.get("mark_source_url"),
        )


def load_settings(storage: IStorageService) -> TrackerSettings:
    """Load settings from storage, returning defaults when none are stored."""
    data = storage.load(SETTINGS_STORAGE_KEY)
    if data is None:
        return TrackerSettings()
    try:
        return TrackerSettings.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Invalid stored settings, using defaults: {e}")
        return TrackerSettings()


def save_settings(storage: IStorageService, settings: TrackerSettings) -> None:
    """Persist settings to storage."""
    storage.save(SETTINGS_STORAGE_KEY, settings.to_dict())
