"""
Configuration loader for workflow graph synchronization.

This module loads and validates the sync configuration from a JSON file.
The configuration defines:
- Format versions written into saved workflow documents
- The data fidelity threshold below which validation warns
- Where the workflow document store keeps its files

The config file path can be set via FLOWSYNC_CONFIG environment variable,
defaulting to config/sync_config.json.
"""

import os
import json
import logging
from typing import Optional
from pathlib import Path
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = "config/sync_config.json"


class SyncSettings(BaseModel):
    """Settings for merge, validation and restore."""
    enhanced_format_version: str = "2.0.0"
    legacy_format_version: str = "1.0.0"
    default_data_version: str = "1.0.0"
    fidelity_warning_threshold: float = Field(80.0, ge=0.0, le=100.0)


class StorageSettings(BaseModel):
    """Settings for the workflow document store."""
    store_path: str = "data/workflows"


class SyncConfigFile(BaseModel):
    """Root configuration model for the config file."""
    sync: SyncSettings = Field(default_factory=SyncSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


class ConfigLoader:
    """
    Singleton configuration loader.

    Loads the sync configuration once and provides access to it.
    """
    _instance: Optional['ConfigLoader'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._config = None
            cls._instance._config_path = None
        return cls._instance

    def __init__(self):
        if self._config is None:
            self._load_config()

    @classmethod
    def reset_instance(cls):
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    def _get_config_path(self) -> str:
        """Get the configuration file path."""
        env_path = os.getenv("FLOWSYNC_CONFIG")
        if env_path:
            return env_path

        # Project root is one level above the flowsync package
        current = Path(__file__).parent.parent
        config_path = current / DEFAULT_CONFIG_PATH

        if config_path.exists():
            return str(config_path)

        cwd_config = Path.cwd() / DEFAULT_CONFIG_PATH
        if cwd_config.exists():
            return str(cwd_config)

        return str(config_path)

    def _load_config(self) -> None:
        """Load and validate the configuration file."""
        self._config_path = self._get_config_path()

        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                raw_config = json.load(f)

            self._config = SyncConfigFile(**raw_config)
            logger.info(f"Loaded sync configuration from: {self._config_path}")

        except FileNotFoundError:
            logger.warning(f"Config file not found at {self._config_path}, using defaults")
            self._config = SyncConfigFile()

        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in config file: {e}, using defaults")
            self._config = SyncConfigFile()

        except Exception as e:
            logger.warning(f"Error loading config: {e}, using defaults")
            self._config = SyncConfigFile()

    def reload(self) -> None:
        """Reload the configuration from disk."""
        self._config = None
        self._load_config()

    @property
    def config(self) -> SyncConfigFile:
        """Get the full configuration."""
        return self._config

    @property
    def config_path(self) -> str:
        """Get the path to the loaded config file."""
        return self._config_path


# Module-level singleton instance
_loader: Optional[ConfigLoader] = None


def _get_loader() -> ConfigLoader:
    """Get or create the ConfigLoader singleton."""
    global _loader
    if _loader is None:
        _loader = ConfigLoader()
    return _loader


def get_sync_settings() -> SyncSettings:
    """Get the merge/validate/restore settings."""
    return _get_loader().config.sync


def get_storage_settings() -> StorageSettings:
    """Get the document store settings."""
    return _get_loader().config.storage


def get_config_path() -> str:
    """Get the path to the loaded configuration file."""
    return _get_loader().config_path


def reload_config() -> None:
    """Reload the configuration from disk."""
    _get_loader().reload()


def reset_loader() -> None:
    """Reset the loader (for testing purposes)."""
    global _loader
    _loader = None
    ConfigLoader.reset_instance()
