from .config_loader import (
    get_config_path,
    get_config_value,
    get_diagram_config,
    get_server_config,
    load_unified_config,
    reload_configs,
)

__all__ = [
    "get_config_path",
    "get_config_value",
    "get_diagram_config",
    "get_server_config",
    "load_unified_config",
    "reload_configs",
]
