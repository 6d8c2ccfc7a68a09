"""
orderflow configuration system.

Provides global configuration for execution bounds, queue delivery, retry
policy, storage, and the default config/secret values.

Configuration is loaded in this priority order:
1. Values set via orderflow.configure() (highest priority)
2. ORDERFLOW_* environment variables
3. Values from orderflow.config.yaml in current directory
4. Default values

Usage:
    >>> import orderflow
    >>> orderflow.configure(
    ...     execution_timeout=60,
    ...     storage_backend="memory",
    ... )
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from orderflow.core.exceptions import ConfigurationError

CONFIG_FILENAME = "orderflow.config.yaml"

# Upper bound a single queue receive may return
MAX_BATCH_SIZE = 10

# Local-development notification credential, in the secret store's JSON layout
DEFAULT_NOTIFICATION_SECRET = '{"apiKey": "local-dev-key-12345"}'


def _load_yaml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from orderflow.config.yaml.

    Args:
        path: Explicit config file path (defaults to ./orderflow.config.yaml)

    Returns:
        Configuration dictionary, empty dict if file not found
    """
    config_path = path or Path.cwd() / CONFIG_FILENAME
    if not config_path.exists():
        return {}

    import yaml

    with open(config_path) as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return config


@dataclass
class OrderFlowConfig:
    """
    Global configuration for orderflow.

    Attributes:
        execution_timeout: Overall bound on one workflow execution, in seconds
        max_retries: Retries for retryable adapter failures (storage, notification)
        retry_delay: Backoff strategy: "exponential", fixed seconds, or a list
        batch_size: Maximum messages per queue receive (at most 10)
        max_receive_count: Deliveries before a message is dead-lettered
        visibility_timeout: Seconds a received message stays invisible
        max_items_per_order: Default for the max-items-per-order config key
        notification_api_key: Default for the notification-api-key secret
        storage_backend: "memory" or "file"
        storage_path: Base directory for the file backend
    """

    execution_timeout: float = 300.0
    max_retries: int = 3
    retry_delay: Union[str, int, float, List[float]] = "exponential"

    # Queue delivery
    batch_size: int = MAX_BATCH_SIZE
    max_receive_count: int = 3
    visibility_timeout: float = 360.0

    # Config/secret defaults
    max_items_per_order: int = 100
    notification_api_key: Optional[str] = DEFAULT_NOTIFICATION_SECRET

    # Infrastructure
    storage_backend: str = "memory"
    storage_path: str = "./orderflow_data"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check value ranges; raises ConfigurationError."""
        if self.execution_timeout <= 0:
            raise ConfigurationError("execution_timeout must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        if self.max_receive_count < 1:
            raise ConfigurationError("max_receive_count must be at least 1")
        if self.max_items_per_order < 1:
            raise ConfigurationError("max_items_per_order must be at least 1")
        if self.storage_backend not in ("memory", "file"):
            raise ConfigurationError(
                f"Unknown storage backend: {self.storage_backend}. Valid backends: memory, file"
            )


# Environment variable -> (field, converter)
_ENV_OVERRIDES = {
    "ORDERFLOW_EXECUTION_TIMEOUT": ("execution_timeout", float),
    "ORDERFLOW_MAX_RETRIES": ("max_retries", int),
    "ORDERFLOW_BATCH_SIZE": ("batch_size", int),
    "ORDERFLOW_MAX_RECEIVE_COUNT": ("max_receive_count", int),
    "ORDERFLOW_VISIBILITY_TIMEOUT": ("visibility_timeout", float),
    "ORDERFLOW_MAX_ITEMS_PER_ORDER": ("max_items_per_order", int),
    "ORDERFLOW_NOTIFICATION_API_KEY": ("notification_api_key", str),
    "ORDERFLOW_STORAGE_BACKEND": ("storage_backend", str),
    "ORDERFLOW_STORAGE_PATH": ("storage_path", str),
}


def _settings_from_yaml(yaml_config: Dict[str, Any]) -> Dict[str, Any]:
    """Map YAML sections to flat config attributes."""
    settings: Dict[str, Any] = {}

    workflow = yaml_config.get("workflow", {})
    if "execution_timeout" in workflow:
        settings["execution_timeout"] = float(workflow["execution_timeout"])
    if "max_retries" in workflow:
        settings["max_retries"] = int(workflow["max_retries"])
    if "retry_delay" in workflow:
        settings["retry_delay"] = workflow["retry_delay"]

    queue = yaml_config.get("queue", {})
    if "batch_size" in queue:
        settings["batch_size"] = int(queue["batch_size"])
    if "max_receive_count" in queue:
        settings["max_receive_count"] = int(queue["max_receive_count"])
    if "visibility_timeout" in queue:
        settings["visibility_timeout"] = float(queue["visibility_timeout"])

    orders = yaml_config.get("orders", {})
    if "max_items_per_order" in orders:
        settings["max_items_per_order"] = int(orders["max_items_per_order"])

    storage = yaml_config.get("storage", {})
    if "backend" in storage:
        settings["storage_backend"] = storage["backend"]
    if "path" in storage:
        settings["storage_path"] = str(storage["path"])

    return settings


def _settings_from_env() -> Dict[str, Any]:
    settings: Dict[str, Any] = {}
    for env_var, (attr, convert) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        try:
            settings[attr] = convert(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {env_var}: {raw!r}") from e
    return settings


def load_config(path: Optional[Path] = None) -> OrderFlowConfig:
    """
    Build a config from the YAML file and environment.

    Args:
        path: Optional explicit YAML path

    Returns:
        New OrderFlowConfig instance
    """
    settings = _settings_from_yaml(_load_yaml_config(path))
    settings.update(_settings_from_env())
    if settings:
        logger.debug(f"Loaded config overrides: {sorted(settings)}")
    return OrderFlowConfig(**settings)


# Global singleton
_config: Optional[OrderFlowConfig] = None


def configure(**kwargs: Any) -> None:
    """
    Configure orderflow defaults.

    Args:
        execution_timeout: Overall execution bound in seconds
        max_retries: Retries for retryable adapter failures
        retry_delay: Backoff strategy
        batch_size: Queue receive batch size
        max_receive_count: Deliveries before dead-lettering
        visibility_timeout: In-flight invisibility window in seconds
        max_items_per_order: Default item limit
        notification_api_key: Default notification credential
        storage_backend: "memory" or "file"
        storage_path: Directory for the file backend

    Example:
        >>> import orderflow
        >>> orderflow.configure(max_retries=0, retry_delay=0)
    """
    global _config
    if _config is None:
        _config = load_config()

    valid_keys = [f.name for f in fields(OrderFlowConfig)]
    for key, value in kwargs.items():
        if key not in valid_keys:
            raise ValueError(
                f"Unknown config option: {key}. Valid options: {', '.join(valid_keys)}"
            )
        setattr(_config, key, value)

    _config.validate()


def get_config() -> OrderFlowConfig:
    """
    Get the current configuration.

    If not yet configured, loads from orderflow.config.yaml and the
    environment, otherwise creates default configuration.

    Returns:
        Current OrderFlowConfig instance
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """
    Reset configuration to defaults.

    Primarily used for testing.
    """
    global _config
    _config = None
