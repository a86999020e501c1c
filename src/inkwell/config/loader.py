"""Configuration loader with YAML and environment variable support.

This module reads ~/.config/inkwell/config.yaml (when it exists) and applies
environment variable overrides using the INKWELL_* prefix.

Environment variables:
- INKWELL_LLM_ENDPOINT: Override llm.endpoint
- INKWELL_LLM_API_KEY: Override llm.api_key (OPENAI_API_KEY is used if unset)
- INKWELL_LLM_MODEL: Override llm.model
- INKWELL_SERVER_HOST: Override server.host
- INKWELL_SERVER_PORT: Override server.port (PORT is used if unset)
- INKWELL_PROXY_URL: Override assistant.proxy_url
- INKWELL_STORE_URL: Override store.url
- INKWELL_STORE_API_KEY: Override store.api_key
- INKWELL_STORE_ACCESS_TOKEN: Override store.access_token
- INKWELL_STORE_USER_ID: Override store.user_id
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from inkwell.models.config import Config
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "inkwell" / "config.yaml"

# (environment variable, section, key)
_STRING_OVERRIDES = [
    ("INKWELL_LLM_ENDPOINT", "llm", "endpoint"),
    ("INKWELL_LLM_MODEL", "llm", "model"),
    ("INKWELL_SERVER_HOST", "server", "host"),
    ("INKWELL_PROXY_URL", "assistant", "proxy_url"),
    ("INKWELL_STORE_URL", "store", "url"),
    ("INKWELL_STORE_API_KEY", "store", "api_key"),
    ("INKWELL_STORE_ACCESS_TOKEN", "store", "access_token"),
    ("INKWELL_STORE_USER_ID", "store", "user_id"),
]


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. If None, uses ~/.config/inkwell/config.yaml

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If there is neither a config file nor any INKWELL_* variable
        PermissionError: If the config file is group/world accessible
        ValueError: If the resulting configuration is invalid
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        data = Config.read_file(config_path)
        logger.info("config_file_read", path=str(config_path))
    else:
        # Environment variables alone may be enough
        data = {}

    data, overridden = _apply_env_overrides(data)

    if not config_path.exists() and not overridden:
        raise FileNotFoundError(
            f"Configuration file not found at {config_path} and no INKWELL_* environment variables set.\n"
            "Either create a config file or set environment variables."
        )

    config = Config(**data)
    logger.info(
        "config_loaded",
        model=config.llm.model,
        endpoint=str(config.llm.endpoint),
        key_set=bool(config.llm.api_key),
        env_overrides=overridden,
    )
    return config


def _apply_env_overrides(data: Dict[str, Any]) -> tuple[Dict[str, Any], list[str]]:
    """Apply environment variable overrides to configuration data.

    Args:
        data: Base configuration dictionary from YAML

    Returns:
        Tuple of (configuration with overrides applied, names of variables used)
    """
    for section in ("llm", "server", "assistant", "store"):
        if not isinstance(data.get(section), dict):
            data[section] = {}

    overridden = []

    for env_name, section, key in _STRING_OVERRIDES:
        if value := os.getenv(env_name):
            data[section][key] = value
            overridden.append(env_name)

    if env_api_key := os.getenv("INKWELL_LLM_API_KEY"):
        data["llm"]["api_key"] = env_api_key
        overridden.append("INKWELL_LLM_API_KEY")
    elif "api_key" not in data["llm"] and (env_api_key := os.getenv("OPENAI_API_KEY")):
        data["llm"]["api_key"] = env_api_key
        overridden.append("OPENAI_API_KEY")

    for env_name in ("INKWELL_SERVER_PORT", "PORT"):
        if env_port := os.getenv(env_name):
            try:
                data["server"]["port"] = int(env_port)
                overridden.append(env_name)
                break
            except ValueError:
                pass  # Invalid value, ignore

    return data, overridden


def update_config_file(config_path: Path, section: str, values: Dict[str, Any]) -> None:
    """Set (or, for None values, remove) keys of one section in the config file.

    Only the file's own contents are rewritten; environment overrides are
    never written back. The file is created if missing and always ends up
    mode 600.

    Args:
        config_path: Path to config.yaml
        section: Top-level section name (e.g. "store")
        values: Keys to set; a None value deletes the key

    Raises:
        PermissionError: If the existing file is group/world accessible
        OSError: If the file cannot be written
    """
    data = Config.read_file(config_path) if config_path.exists() else {}
    if not isinstance(data.get(section), dict):
        data[section] = {}

    for key, value in values.items():
        if value is None:
            data[section].pop(key, None)
        else:
            data[section][key] = value

    config_path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(dir=config_path.parent, prefix=".config_", suffix=".yaml")
    try:
        with os.fdopen(temp_fd, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        os.chmod(temp_path, 0o600)
        os.replace(temp_path, config_path)
    except Exception as e:
        logger.error("config_write_failed", path=str(config_path), error=str(e))
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise

    logger.info("config_section_updated", path=str(config_path), section=section, keys=sorted(values))
