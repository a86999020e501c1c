"""Configuration loading for Inkwell."""

from inkwell.config.loader import DEFAULT_CONFIG_PATH, load_config, update_config_file

__all__ = ["DEFAULT_CONFIG_PATH", "load_config", "update_config_file"]
