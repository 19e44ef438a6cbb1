"""
Configuration management for Playwright Session MCP

Loads configuration from environment variables (optionally from a .env file)
with sensible defaults. All variables share the PW_SESSION_MCP_ prefix, e.g.
PW_SESSION_MCP_HEADLESS=true.
"""

import logging
import os
import re
from pathlib import Path
from typing import TypedDict

from dotenv import load_dotenv

from ..capabilities import parse_capabilities

logger = logging.getLogger(__name__)

ENV_PREFIX = "PW_SESSION_MCP_"

# Load environment variables from .env file
# Try multiple paths for .env file
env_loaded = False
for env_path in [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent.parent / ".env",
    Path.home() / ".env",
]:
    if env_path.exists():
        logger.info(f"Loading environment from: {env_path}")
        load_dotenv(env_path)
        env_loaded = True
        break

if not env_loaded:
    logger.warning("No .env file found, using system environment variables only")


# Chromium-family browsers only: snapshots and refs are read over CDP
SUPPORTED_BROWSERS = ("chromium", "chrome", "chrome-beta", "msedge", "msedge-beta")

VIEWPORT_PATTERN = re.compile(r"^(\d+)\s*[xX,]\s*(\d+)$")


class ProxyConfig(TypedDict, total=False):
    """Proxy settings for one browser context"""

    server: str
    username: str | None
    password: str | None
    bypass: str | None


class BrowserConfig(TypedDict, total=False):
    """Configuration for the browser session"""

    # Browser settings
    browser: str
    headless: bool
    viewport_size: str | None
    user_agent: str | None
    ignore_https_errors: bool

    # Connection
    cdp_endpoint: str | None

    # Profile/storage
    user_data_dir: str | None
    storage_state: str | None

    # Network
    proxy_server: str | None
    proxy_bypass: str | None
    proxy_username: str | None
    proxy_password: str | None

    # Capabilities
    caps: str

    # Output
    output_dir: str

    # Timeouts (milliseconds)
    timeout_action: int
    timeout_navigation: int
    settle_timeout: int


class LoggingConfig(TypedDict):
    """Configuration for file logging"""

    log_file: str
    log_level: str


def _get_bool_env(key: str, default: bool) -> bool:
    """Get boolean environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {key}: {value!r}")
        return default


_DEFAULTS: BrowserConfig = {
    "browser": "chromium",
    "headless": False,
    "viewport_size": None,
    "ignore_https_errors": False,
    "caps": "",
    "output_dir": "output",
    "timeout_action": 5000,
    "timeout_navigation": 10000,
    "settle_timeout": 5000,
}

# Each tuple: (env_suffix, config_key, value_type)
_CONFIG_KEY_MAPPINGS: list[tuple[str, str, str]] = [
    # Browser settings
    ("BROWSER", "browser", "str"),
    ("HEADLESS", "headless", "bool"),
    ("VIEWPORT_SIZE", "viewport_size", "str"),
    ("USER_AGENT", "user_agent", "str"),
    ("IGNORE_HTTPS_ERRORS", "ignore_https_errors", "bool"),
    # Connection
    ("CDP_ENDPOINT", "cdp_endpoint", "str"),
    # Profile/storage
    ("USER_DATA_DIR", "user_data_dir", "str"),
    ("STORAGE_STATE", "storage_state", "str"),
    # Network
    ("PROXY_SERVER", "proxy_server", "str"),
    ("PROXY_BYPASS", "proxy_bypass", "str"),
    ("PROXY_USERNAME", "proxy_username", "str"),
    ("PROXY_PASSWORD", "proxy_password", "str"),
    # Capabilities
    ("CAPS", "caps", "str"),
    # Output
    ("OUTPUT_DIR", "output_dir", "str"),
    # Timeouts
    ("TIMEOUT_ACTION", "timeout_action", "int"),
    ("TIMEOUT_NAVIGATION", "timeout_navigation", "int"),
    ("SETTLE_TIMEOUT", "settle_timeout", "int"),
]


def _apply_config_overrides(config: BrowserConfig, prefix: str) -> None:
    """
    Apply configuration overrides from environment variables with given prefix.

    Args:
        config: Config dict to update in-place
        prefix: Environment variable prefix (e.g., "PW_SESSION_MCP_")
    """
    for env_suffix, config_key, value_type in _CONFIG_KEY_MAPPINGS:
        env_var = f"{prefix}{env_suffix}"
        if os.getenv(env_var) is None:
            continue

        if value_type == "str":
            config[config_key] = os.getenv(env_var) or None  # type: ignore[literal-required]
        elif value_type == "bool":
            config[config_key] = _get_bool_env(env_var, False)  # type: ignore[literal-required]
        elif value_type == "int":
            default = _DEFAULTS[config_key]  # type: ignore[literal-required]
            config[config_key] = _get_int_env(env_var, default)  # type: ignore[literal-required]


def parse_viewport(value: str | None) -> tuple[int, int] | None:
    """
    Parse a viewport size such as "1280x720".

    Raises:
        ValueError: If the value is not WIDTHxHEIGHT with positive integers
    """
    if not value:
        return None
    match = VIEWPORT_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid viewport size '{value}'. Expected WIDTHxHEIGHT, e.g. 1280x720")
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid viewport size '{value}'. Width and height must be positive")
    return width, height


def _validate_config(config: BrowserConfig) -> None:
    """
    Raises:
        ValueError: If configuration is invalid
    """
    browser = config["browser"]
    if browser not in SUPPORTED_BROWSERS:
        raise ValueError(
            f"Unsupported browser '{browser}'. Supported: {', '.join(SUPPORTED_BROWSERS)}"
        )
    parse_viewport(config.get("viewport_size"))
    parse_capabilities(config.get("caps"))
    if config.get("cdp_endpoint") and config.get("user_data_dir"):
        raise ValueError("CDP_ENDPOINT and USER_DATA_DIR cannot be combined")


def load_browser_config() -> BrowserConfig:
    """
    Load browser configuration from environment variables.

    Returns:
        BrowserConfig with defaults applied

    Raises:
        ValueError: If configuration is invalid
    """
    config: BrowserConfig = dict(_DEFAULTS)  # type: ignore[assignment]
    _apply_config_overrides(config, ENV_PREFIX)
    _validate_config(config)

    logger.info(
        f"Browser config: browser={config['browser']}, headless={config['headless']}, "
        f"cdp_endpoint={config.get('cdp_endpoint')}, caps={config['caps'] or '(none)'}"
    )
    return config


def default_proxy(config: BrowserConfig) -> ProxyConfig | None:
    """Proxy applied to contexts created without an explicit proxy."""
    server = config.get("proxy_server")
    if not server:
        return None
    return {
        "server": server,
        "username": config.get("proxy_username"),
        "password": config.get("proxy_password"),
        "bypass": config.get("proxy_bypass"),
    }


def load_logging_config() -> LoggingConfig:
    """
    Load logging configuration from environment variables.

    Returns:
        LoggingConfig with all settings
    """
    return {
        "log_file": os.getenv(f"{ENV_PREFIX}LOG_FILE", "logs/playwright-session-mcp.log"),
        "log_level": os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
    }
