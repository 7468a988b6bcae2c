"""
SLA External Service Integrations
==================================

YAML SLA configuration with watchdog hot-reload.
"""

import threading
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from chatpulse.config import settings
from chatpulse.core import ConfigurationException
from chatpulse.shared.infrastructure.logging import get_logger
from chatpulse.sla.application.services import ISLAConfigProvider
from chatpulse.sla.domain import SLAConfig

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA config file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def _handle(self, path: str) -> None:
        if Path(path).resolve() == self.config_path.resolve():
            logger.info(f"Config file changed: {path}")
            self.config_manager.reload()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        self._handle(event.src_path)

    def on_created(self, event):
        """Editors that save via rename surface as a create."""
        if event.is_directory:
            return
        self._handle(event.src_path)


class SLAConfigManager(ISLAConfigProvider):
    """
    Thread-safe SLA configuration manager with hot-reload support.

    Uses watchdog to monitor file changes and reload configuration
    without restarting the service. A reload that fails validation keeps
    the previous configuration.
    """

    def __init__(self):
        self._config: Optional[SLAConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAConfig:
        """Initial configuration load."""
        self._path = Path(path)
        config = self._load_from_file(self._path)
        with self._lock:
            self._config = config
        return config

    def _load_from_file(self, path: Path) -> SLAConfig:
        """Load and parse YAML config file."""
        if not path.exists():
            logger.warning(f"SLA config file not found: {path}, using defaults")
            return SLAConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationException(
                "SLA config must be a mapping",
                {"path": str(path), "type": type(data).__name__}
            )

        try:
            return SLAConfig(**data)
        except ValidationError as e:
            raise ConfigurationException(
                "Invalid SLA configuration",
                {"path": str(path), "errors": e.errors(include_url=False)}
            )

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (ConfigurationException, yaml.YAMLError, OSError) as e:
            logger.error(f"Failed to reload SLA config: {e}")
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA configuration reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching configuration file for changes.

        Skips watching if:
        - File doesn't exist (defaults are in use)
        - Running in a containerized environment where inotify doesn't work
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                f"Config file doesn't exist, skipping file watch: {self._path}. "
                "Using default SLA configuration."
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching config file: {self._path}")
        except OSError as e:
            # File watching not supported (e.g., in Docker containers)
            logger.warning(
                f"File watching not available, using static config: {e}"
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def config(self) -> SLAConfig:
        """Get current configuration."""
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA configuration not loaded")
            return self._config

    def get_config(self) -> SLAConfig:
        return self.config


# Global config manager instance
_config_manager: Optional[SLAConfigManager] = None


def get_sla_config_manager() -> SLAConfigManager:
    """Get or create the shared config manager, loading settings.sla_config_path."""
    global _config_manager
    if _config_manager is None:
        manager = SLAConfigManager()
        manager.load(settings.sla_config_path)
        _config_manager = manager
    return _config_manager


def reset_sla_config_manager() -> None:
    """Stop watching and drop the shared config manager."""
    global _config_manager
    if _config_manager is not None:
        _config_manager.stop_watching()
        _config_manager = None
