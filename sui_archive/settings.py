"""Settings loading and logging setup shared by the command line tools."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .graphql_fetcher import DEFAULT_GRAPHQL_ENDPOINT
from .json_rpc import DEFAULT_JSON_RPC_ENDPOINT

DEFAULT_SETTINGS_PATH = Path("settings.yaml")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "packages_dir": "packages",
    "move_decompiler_path": None,
    "bytecode_reader": None,
    "graphql_endpoint": DEFAULT_GRAPHQL_ENDPOINT,
    "json_rpc_endpoint": DEFAULT_JSON_RPC_ENDPOINT,
    "http_timeout": 60.0,
}

# Environment variable -> settings key
ENV_OVERRIDES = {
    "SUI_ARCHIVE_PACKAGES_DIR": "packages_dir",
    "SUI_ARCHIVE_DECOMPILER": "move_decompiler_path",
    "SUI_ARCHIVE_BYTECODE_READER": "bytecode_reader",
    "SUI_GRAPHQL_ENDPOINT": "graphql_endpoint",
    "SUI_JSON_RPC_ENDPOINT": "json_rpc_endpoint",
}

NOISY_LOGGERS = (
    "urllib3",
    "urllib3.connectionpool",
)


def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO):
    """Configure root logger with file + console handlers."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def load_settings(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load settings from a YAML file and environment variables.

    Built-in defaults are overridden by the file, which is overridden by
    the environment. A missing file is not an error.
    """
    settings = dict(DEFAULT_SETTINGS)
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    if settings_path.exists():
        with open(settings_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{settings_path} must contain a mapping")
        settings.update(loaded)

    for env_var, key in ENV_OVERRIDES.items():
        if os.getenv(env_var):
            settings[key] = os.getenv(env_var)

    settings["http_timeout"] = float(settings["http_timeout"])
    return settings
