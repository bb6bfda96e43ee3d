"""
Configuration management system for the Sleeper Gateway.

This module provides flexible configuration management with support for:
- Environment variables
- Configuration files (YAML/JSON)
- Configuration validation
- Hot-reloading
"""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import httpx
import yaml
from pydantic import BaseModel, ValidationError, Field

logger = logging.getLogger(__name__)


@dataclass
class TimeoutConfig:
    """Upstream HTTP timeout configuration."""
    total: float = 10.0
    connect: float = 5.0


@dataclass
class LongTimeoutConfig:
    """Long HTTP timeout configuration for the bulk player catalog."""
    total: float = 60.0
    connect: float = 15.0


@dataclass
class ServerConfig:
    """Server configuration."""
    version: str = "1.0.0"
    service_name: str = "sleeper-client"
    host: str = "0.0.0.0"
    port: int = 8787
    execute_deadline_seconds: float = 25.0
    log_level: str = "INFO"
    base_user_agent: str = field(init=False)

    def __post_init__(self):
        self.base_user_agent = f"sleeper-gateway/{self.version}"


@dataclass
class UpstreamConfig:
    """Sleeper API location."""
    base_url: str = "https://api.sleeper.app/v1"


@dataclass
class CacheConfig:
    """Player catalog cache configuration."""
    players_ttl_seconds: int = 24 * 60 * 60
    key_version: str = "v1"
    sqlite_path: str = "sleeper_cache.db"


@dataclass
class ValidationLimits:
    """Parameter clamping limits."""
    free_agents_min: int = 1
    free_agents_max: int = 100
    free_agents_default: int = 25
    search_min: int = 1
    search_max: int = 25
    search_default: int = 10
    transactions_min: int = 1
    transactions_max: int = 100
    transactions_default: int = 25


class ConfigurationModel(BaseModel):
    """Pydantic model for configuration validation."""
    timeout: TimeoutConfig = Field(default_factory=TimeoutConfig)
    long_timeout: LongTimeoutConfig = Field(default_factory=LongTimeoutConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    limits: ValidationLimits = Field(default_factory=ValidationLimits)

    model_config = {"arbitrary_types_allowed": True}


class ConfigFileHandler(FileSystemEventHandler):
    """File system event handler for configuration hot-reloading."""

    def __init__(self, config_manager: 'ConfigManager'):
        self.config_manager = config_manager
        super().__init__()

    def on_modified(self, event):
        if not event.is_directory and event.src_path == str(self.config_manager.config_file_path):
            logger.info(f"Configuration file {event.src_path} modified, reloading...")
            self.config_manager.reload_configuration()


class ConfigManager:
    """
    Configuration manager supporting environment variables,
    configuration files, validation, and hot-reloading.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None, enable_hot_reload: bool = True):
        """
        Initialize the configuration manager.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            enable_hot_reload: Whether to enable hot-reloading of configuration files
        """
        self.config_file_path = Path(config_file) if config_file else None
        self.enable_hot_reload = enable_hot_reload
        self._config_lock = threading.RLock()
        self._observer = None
        self._config: Optional[ConfigurationModel] = None

        self.load_configuration()

        if self.enable_hot_reload and self.config_file_path and self.config_file_path.exists():
            self._setup_hot_reload()

    def _setup_hot_reload(self):
        """Set up file system monitoring for hot-reloading."""
        if self._observer:
            self._observer.stop()
            self._observer.join()

        self._observer = Observer()
        event_handler = ConfigFileHandler(self)
        self._observer.schedule(event_handler, str(self.config_file_path.parent), recursive=False)
        self._observer.start()

    def load_configuration(self):
        """Load configuration from environment variables and config file."""
        with self._config_lock:
            config_dict = {}

            if self.config_file_path and self.config_file_path.exists():
                config_dict = self._load_config_file()

            config_dict = self._load_environment_variables(config_dict)

            try:
                self._config = ConfigurationModel(**config_dict)
            except ValidationError as e:
                raise ValueError(f"Configuration validation failed: {e}")

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        try:
            with open(self.config_file_path, 'r') as f:
                if self.config_file_path.suffix.lower() in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif self.config_file_path.suffix.lower() == '.json':
                    return json.load(f)
                else:
                    raise ValueError(f"Unsupported configuration file format: {self.config_file_path.suffix}")
        except Exception as e:
            raise ValueError(f"Failed to load configuration file {self.config_file_path}: {e}")

    def _load_environment_variables(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_mappings = {
            # Timeouts
            'SLEEPER_GATEWAY_TIMEOUT_TOTAL': ('timeout', 'total', float),
            'SLEEPER_GATEWAY_TIMEOUT_CONNECT': ('timeout', 'connect', float),
            'SLEEPER_GATEWAY_LONG_TIMEOUT_TOTAL': ('long_timeout', 'total', float),
            'SLEEPER_GATEWAY_LONG_TIMEOUT_CONNECT': ('long_timeout', 'connect', float),

            # Server
            'SLEEPER_GATEWAY_SERVER_VERSION': ('server', 'version', str),
            'SLEEPER_GATEWAY_SERVICE_NAME': ('server', 'service_name', str),
            'SLEEPER_GATEWAY_HOST': ('server', 'host', str),
            'SLEEPER_GATEWAY_PORT': ('server', 'port', int),
            'SLEEPER_GATEWAY_EXECUTE_DEADLINE': ('server', 'execute_deadline_seconds', float),
            'SLEEPER_GATEWAY_LOG_LEVEL': ('server', 'log_level', str),

            # Upstream
            'SLEEPER_GATEWAY_BASE_URL': ('upstream', 'base_url', str),

            # Cache
            'SLEEPER_GATEWAY_PLAYERS_TTL': ('cache', 'players_ttl_seconds', int),
            'SLEEPER_GATEWAY_CACHE_KEY_VERSION': ('cache', 'key_version', str),
            'SLEEPER_GATEWAY_CACHE_DB': ('cache', 'sqlite_path', str),

            # Limits
            'SLEEPER_GATEWAY_FREE_AGENTS_MAX': ('limits', 'free_agents_max', int),
            'SLEEPER_GATEWAY_FREE_AGENTS_DEFAULT': ('limits', 'free_agents_default', int),
            'SLEEPER_GATEWAY_SEARCH_MAX': ('limits', 'search_max', int),
            'SLEEPER_GATEWAY_SEARCH_DEFAULT': ('limits', 'search_default', int),
            'SLEEPER_GATEWAY_TRANSACTIONS_MAX': ('limits', 'transactions_max', int),
            'SLEEPER_GATEWAY_TRANSACTIONS_DEFAULT': ('limits', 'transactions_default', int),
        }

        for env_var, (section, key, type_converter) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                try:
                    if section not in config_dict:
                        config_dict[section] = {}
                    config_dict[section][key] = type_converter(env_value)
                except (ValueError, TypeError) as e:
                    raise ValueError(f"Invalid value for environment variable {env_var}: {env_value} ({e})")

        return config_dict

    def reload_configuration(self):
        """Reload configuration from file and environment variables."""
        try:
            self.load_configuration()
            logger.info("Configuration reloaded successfully")
        except ValueError as e:
            logger.error(f"Failed to reload configuration: {e}")

    @property
    def config(self) -> ConfigurationModel:
        """Get the current configuration."""
        with self._config_lock:
            if self._config is None:
                raise RuntimeError("Configuration not loaded")
            return self._config

    def get_http_timeout(self) -> httpx.Timeout:
        """Get upstream HTTP timeout configuration."""
        timeout_config = self.config.timeout
        return httpx.Timeout(timeout_config.total, connect=timeout_config.connect)

    def get_long_http_timeout(self) -> httpx.Timeout:
        """Get long HTTP timeout configuration."""
        timeout_config = self.config.long_timeout
        return httpx.Timeout(timeout_config.total, connect=timeout_config.connect)

    def get_user_agent(self) -> str:
        """Get the fixed upstream User-Agent string."""
        return self.config.server.base_user_agent

    def get_limits_dict(self) -> Dict[str, int]:
        """Get clamping limits as a dictionary."""
        limits = self.config.limits
        return {
            "free_agents_min": limits.free_agents_min,
            "free_agents_max": limits.free_agents_max,
            "free_agents_default": limits.free_agents_default,
            "search_min": limits.search_min,
            "search_max": limits.search_max,
            "search_default": limits.search_default,
            "transactions_min": limits.transactions_min,
            "transactions_max": limits.transactions_max,
            "transactions_default": limits.transactions_default,
        }

    def stop(self):
        """Stop the configuration manager and clean up resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join()


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        config_paths = [
            Path("config.yml"),
            Path("config.yaml"),
            Path("config.json"),
            Path("/etc/sleeper-gateway/config.yml"),
            Path("/etc/sleeper-gateway/config.yaml"),
            Path("/etc/sleeper-gateway/config.json"),
        ]

        config_file = None
        for path in config_paths:
            if path.exists():
                config_file = path
                break

        _config_manager = ConfigManager(config_file)

    return _config_manager


def set_config_manager(config_manager: ConfigManager):
    """Set the global configuration manager instance."""
    global _config_manager
    if _config_manager:
        _config_manager.stop()
    _config_manager = config_manager
