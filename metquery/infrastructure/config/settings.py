"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.metquery/config.yaml).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from metquery.domain.catalog import BASE_URL

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".metquery"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_KEYPAIR_PATH = Path.home() / ".config" / "solana" / "id.json"
ENV_FILE_NAME = ".env"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Defaults passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False keeps real environment variables on top
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _env_key(key: str) -> str:
    return key.upper().replace(".", "_")


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def _lookup(store: Dict[str, Any], key: str) -> Any:
    """Finds a dotted key either as a flat entry or by walking nested mappings."""
    if key in store:
        return store[key]
    node: Any = store
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    Priority:
    1. Test configuration
    2. Environment variable (`metquery.base_url` -> `METQUERY_BASE_URL`)
    3. YAML config
    4. Default value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    value = _lookup(_config, key)
    if value is not None:
        return value

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_base_url() -> str:
    return str(get_config("metquery.base_url", BASE_URL))


def get_svm_private_key() -> Optional[str]:
    """Base58 Solana secret key, if configured directly."""
    key = get_config("metquery.svm_private_key")
    return str(key) if key else None


def get_keypair_path() -> Path:
    return Path(str(get_config("metquery.keypair_path", DEFAULT_KEYPAIR_PATH))).expanduser()


def load_keypair_bytes(path: Optional[Path] = None) -> List[int]:
    """Reads a Solana CLI keyfile (a JSON array of 64 byte values).

    Raises:
        FileNotFoundError: If the keyfile does not exist.
        ValueError: If the file is not a 64-element byte array.
    """
    keypair_path = path or get_keypair_path()
    raw = json.loads(keypair_path.read_text(encoding="utf-8"))
    if not isinstance(raw, list) or len(raw) != 64 or not all(isinstance(b, int) and 0 <= b < 256 for b in raw):
        raise ValueError(f"Keypair file {keypair_path} is not a 64-byte JSON array.")
    return raw


def get_http_timeout() -> Optional[float]:
    """Client-side HTTP timeout; None by default so the gateway's 504 decides."""
    timeout = get_config("http.timeout_seconds")
    return float(timeout) if timeout is not None else None


def get_throttle_interval(default: float = 5.0) -> float:
    return float(get_config("throttle.interval_seconds", default))


def get_retry_setting(name: str, default: Any) -> Any:
    """Reads `retry.<name>`, e.g. `retry.linear_step_seconds`."""
    return get_config(f"retry.{name}", default)


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values for testing purposes.

    These values override every other configuration source.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
