"""
Remote config loader utility.

Downloads the manager settings published at ``config_url`` and merges them
beneath the local configuration.
"""

import logging
from typing import Any, Dict, Optional

import requests
import yaml


logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge override dict into base dict.

    Args:
        base: Base configuration
        override: Configuration to merge in (overrides base)

    Returns:
        Merged configuration
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def download_remote_config(
    config_url: str,
    timeout: int = 10,
    logger_instance: Optional[logging.Logger] = None
) -> Optional[Dict[str, Any]]:
    """
    Download and parse remote configuration from URL.

    The body is parsed as JSON first, then as YAML.

    Returns:
        Parsed config dict, or None if the download or parse failed
    """
    log = logger_instance or logger

    if not config_url:
        return None

    try:
        log.info(f"Downloading remote config: {config_url}")
        response = requests.get(config_url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        log.error(f"Failed to download remote config: {e}")
        return None

    try:
        remote_config = response.json()
    except ValueError:
        try:
            remote_config = yaml.safe_load(response.text)
        except yaml.YAMLError as e:
            log.error(f"Remote config is neither JSON nor YAML: {e}")
            return None

    if not isinstance(remote_config, dict):
        log.warning("Remote config is not a mapping, ignoring")
        return None

    return remote_config
