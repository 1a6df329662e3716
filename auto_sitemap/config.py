import json
import logging
import os
from typing import Any, Dict, Optional

from auto_sitemap.sitemap_fetcher import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

CONFIG_FILE_PATH = "config.json"

DEFAULTS: Dict[str, Any] = {
    "user_agent": DEFAULT_USER_AGENT,
    "timeout": 30,
    "max_retries": 3,
    "download_delay": 0.0,
    "max_pages": 10000,
    "max_workers": 4,
    "max_concurrent_domains": 1,
    "data_directory": "output",
    "sort_by_url": True,
}

NUMERIC_KEYS = ["timeout", "max_retries", "download_delay", "max_pages", "max_workers", "max_concurrent_domains"]


def load_config(config_path: str = CONFIG_FILE_PATH) -> Optional[Dict[str, Any]]:
    """Loads the configuration from a JSON file, with defaults filled in."""
    if not os.path.exists(config_path):
        logger.error(f"Configuration file not found: {config_path}")
        return None
    try:
        with open(config_path, 'r') as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {config_path}: {e}")
        return None
    except OSError as e:
        logger.error(f"Could not read {config_path}: {e}")
        return None

    logger.info(f"Successfully loaded configuration from {config_path}")
    if not validate_config(config_data):
        return None
    return apply_defaults(config_data)


def apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a copy of config with missing global settings set to DEFAULTS."""
    return {**DEFAULTS, **config}


def validate_config(config: Dict[str, Any]) -> bool:
    """Validates the structure and content of the configuration."""
    if not isinstance(config, dict):
        logger.error("Configuration must be a dictionary.")
        return False

    if "targets" not in config or not isinstance(config["targets"], list):
        logger.error("'targets' key is missing or not a list in config.")
        return False

    if not config["targets"]:
        logger.warning("'targets' list is empty. No sitemaps will be generated.")

    seen_domains = set()
    for i, target_entry in enumerate(config["targets"]):
        if not isinstance(target_entry, dict):
            logger.error(f"Target entry at index {i} is not a dictionary.")
            return False
        required_keys = ["domain", "seed_url"]
        for key in required_keys:
            if key not in target_entry:
                logger.error(f"Target entry at index {i} is missing required key: '{key}'.")
                return False
            if not isinstance(target_entry[key], str) or not target_entry[key].strip():
                logger.error(f"Value for key '{key}' in target entry at index {i} must be a non-empty string.")
                return False
        if not target_entry["seed_url"].startswith(("http://", "https://")):
            logger.error(f"'seed_url' in target entry at index {i} must start with http:// or https://.")
            return False
        # Results, output paths and change logs are all keyed by domain
        if target_entry["domain"] in seen_domains:
            logger.error(f"Duplicate domain '{target_entry['domain']}' in target entry at index {i}.")
            return False
        seen_domains.add(target_entry["domain"])
        for key in ["sitemap_url", "output_path", "deploy_url"]:
            if key in target_entry and not isinstance(target_entry[key], str):
                logger.error(f"Value for key '{key}' in target entry at index {i} must be a string.")
                return False

    for key in NUMERIC_KEYS:
        if key not in config:
            continue
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            logger.error(f"'{key}' must be a non-negative number, got {value!r}.")
            return False

    if "user_agent" in config and (not isinstance(config["user_agent"], str) or not config["user_agent"].strip()):
        logger.warning("'user_agent' is not a non-empty string. The default one will be used.")

    logger.info("Configuration validation successful.")
    return True
