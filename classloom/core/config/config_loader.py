"""Unified configuration loader.

Settings come from ``config/classloom.yaml`` (directory overridable with
``CLASSLOOM_CONFIG_DIR``), then environment variables, with ``.env``
loaded first so it can feed the environment. Loaded configs are cached
per name; call ``reload_configs()`` after editing the file.
"""

import copy
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

from ..providers.rest_client import ServerConfig

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "classloom"

DEFAULTS: Dict[str, Any] = {
    "backend": "source",
    "source": {
        "roots": ["."],
        "reserved_prefixes": ["%"],
    },
    "server": {
        "host": "localhost",
        "port": 52773,
        "namespace": "USER",
        "username": "_SYSTEM",
        "password": "SYS",
        "ssl": False,
        "verify_tls": False,
        "timeout": 30.0,
    },
    "resolver": {
        "max_depth": None,
        "max_concurrency": 1,
    },
    "diagram": {
        "output_dir": "out_classdiagram",
        "server_url": "https://www.plantuml.com/plantuml",
        "format": "svg",
        "jar_path": None,
        "render": "none",
    },
}

# (env var, key path, converter)
_ENV_OVERRIDES = [
    ("CLASSLOOM_BACKEND", ("backend",), str),
    ("IRIS_HOST", ("server", "host"), str),
    ("IRIS_PORT", ("server", "port"), int),
    ("IRIS_NAMESPACE", ("server", "namespace"), str),
    ("IRIS_USERNAME", ("server", "username"), str),
    ("IRIS_PASSWORD", ("server", "password"), str),
    ("IRIS_SSL", ("server", "ssl"), lambda v: v.strip().lower() in ("1", "true", "yes", "on")),
    ("PLANTUML_SERVER_URL", ("diagram", "server_url"), str),
    ("PLANTUML_JAR_PATH", ("diagram", "jar_path"), str),
]


def get_config_path() -> Path:
    """Directory holding the YAML config files."""
    override = os.getenv("CLASSLOOM_CONFIG_DIR")
    if override:
        return Path(override)
    return Path(__file__).parent.parent.parent.parent / "config"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    for env_var, path, convert in _ENV_OVERRIDES:
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_var, raw)
            continue
        section = config
        for key in path[:-1]:
            section = section.setdefault(key, {})
        section[path[-1]] = value


@lru_cache(maxsize=8)
def load_unified_config(name: str = DEFAULT_CONFIG_NAME) -> Dict[str, Any]:
    """Load ``<name>.yaml`` merged over built-in defaults and env overrides."""
    config = copy.deepcopy(DEFAULTS)
    config_file = get_config_path() / f"{name}.yaml"

    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config = _deep_merge(config, loaded)
                logger.debug("Loaded config from %s", config_file)
            else:
                logger.error("Config %s is not a mapping, using defaults", config_file)
        except yaml.YAMLError as e:
            logger.error("Invalid YAML in %s: %s, using defaults", config_file, e)
    else:
        logger.debug("Config file %s not found, using defaults", config_file)

    _apply_env_overrides(config)
    return config


def reload_configs() -> None:
    """Clear cached configs so the next read picks up changes."""
    load_unified_config.cache_clear()


def get_config_value(name: str, *keys: str, default: Any = None) -> Any:
    """Walk ``keys`` into config ``name``; return ``default`` if any is missing.

    Example:
        get_config_value("classloom", "server", "port", default=52773)
    """
    value: Any = load_unified_config(name)
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return default if value is None else value


def get_server_config(name: str = DEFAULT_CONFIG_NAME) -> ServerConfig:
    """Server connection settings as a ServerConfig."""
    return ServerConfig.from_dict(load_unified_config(name).get("server"))


def get_diagram_config(name: str = DEFAULT_CONFIG_NAME) -> Dict[str, Any]:
    """The ``diagram`` section, with defaults filled in."""
    return _deep_merge(DEFAULTS["diagram"], load_unified_config(name).get("diagram") or {})
