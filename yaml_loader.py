import os
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger("config")

DEFAULT_CONFIG_PATH = Path("./config/config.yaml")
CONFIG_ENV_VAR = "ZWAVE_BRIDGE_CONFIG"


def load_yaml_config(filepath: Path) -> dict:
    """
    Loads configuration data from a YAML file.

    Args:
        filepath (Path): The path object pointing to the YAML configuration file.

    Returns:
        dict: The loaded configuration as a dictionary.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If there is an issue parsing the YAML content.
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found at: {filepath}")

    try:
        with open(filepath, 'r') as f:
            config_data = yaml.safe_load(f)
        return config_data if config_data is not None else {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file: {e}")
        raise
    except IOError as e:
        logger.error(f"Error reading config file: {e}")
        raise


def config_path() -> Path:
    """Config file location, overridable through ZWAVE_BRIDGE_CONFIG."""
    return Path(os.environ.get(CONFIG_ENV_VAR, str(DEFAULT_CONFIG_PATH)))


def load_config(filepath: Optional[Path] = None) -> dict:
    """Load the bridge configuration, returning {} when no file exists."""
    path = filepath or config_path()
    if not path.exists():
        logger.warning(f"No configuration at {path}, using defaults")
        return {}
    return load_yaml_config(path)


def get_conf(config: dict, section: str, key: str, default: Any = None) -> Any:
    """Get a configuration value from a section."""
    return (config.get(section) or {}).get(key, default)
