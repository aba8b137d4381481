"""Lazily loaded process configuration."""

from __future__ import annotations

import os
from pathlib import Path

from ..config import Config
from ..constants import CONFIG_PATH, CONFIG_PATH_ENV

__all__ = ["ConfigDependency", "config_dependency"]


class ConfigDependency:
    """Loads and caches the ipadav configuration.

    Until a path is set explicitly, the configuration is read from the file
    named by ``IPADAV_CONFIG_PATH`` or, failing that, the default path. The
    environment is consulted when the file is first loaded, not at import.
    Loading a configuration file also configures logging.
    """

    def __init__(self) -> None:
        self._config_path: Path | None = None
        self._config: Config | None = None

    @property
    def config_path(self) -> Path:
        """Path to the configuration file."""
        if self._config_path:
            return self._config_path
        return Path(os.getenv(CONFIG_PATH_ENV, CONFIG_PATH))

    def config(self) -> Config:
        """Return the configuration, loading it on first use."""
        if self._config is None:
            self._config = self._load(self.config_path)
        return self._config

    def set_config_path(self, path: Path) -> Config:
        """Switch to a different configuration file.

        The new file is loaded immediately so that errors surface here
        rather than on the next use.

        Parameters
        ----------
        path
            The new configuration path.

        Returns
        -------
        Config
            The newly loaded configuration.
        """
        config = self._load(path)
        self._config_path = path
        self._config = config
        return config

    def clear(self) -> None:
        """Forget the loaded configuration and any explicit path."""
        self._config_path = None
        self._config = None

    @staticmethod
    def _load(path: Path) -> Config:
        config = Config.from_file(path)
        config.configure_logging()
        return config


config_dependency = ConfigDependency()
"""Process-wide configuration loader."""
