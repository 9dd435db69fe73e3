"""Class metadata providers.

Exactly one backend is chosen per session by ``build_provider``:

    source  - local ``.cls`` files (SourceTextProvider)
    rest    - IRIS Atelier SQL endpoint (RemoteSqlProvider)
    host    - host-supplied query function (HostApiProvider)
"""

import logging
from typing import Any, Callable, Dict, Optional

from .base import ClassInfoProvider, DEFAULT_RESERVED_PREFIXES
from .host_provider import HostApiProvider
from .models import ClassInfo, ClassMember, HierarchyGraph, ResolvedHierarchy
from .rest_client import AtelierQueryClient, ServerConfig
from .rest_provider import RemoteSqlProvider
from .source_parser import parse_class_source
from .source_provider import SourceTextProvider

logger = logging.getLogger(__name__)

BACKENDS = ("source", "rest", "host")


def build_provider(
    config: Dict[str, Any],
    host: Any = None,
    reader: Optional[Callable[[str], str]] = None,
) -> ClassInfoProvider:
    """Construct the provider named by ``config["backend"]``.

    Args:
        config: Unified config dict (see ``load_unified_config``)
        host: Host object, required for the ``host`` backend
        reader: Optional file reader for the ``source`` backend

    Raises:
        ValueError: Unknown backend, or ``host`` backend without a host
    """
    backend = str(config.get("backend") or "source").lower()
    source = config.get("source") or {}
    prefixes = tuple(source.get("reserved_prefixes") or DEFAULT_RESERVED_PREFIXES)

    if backend == "source":
        roots = source.get("roots") or ["."]
        logger.info("Using source backend over %s", roots)
        return SourceTextProvider(roots, reader=reader, reserved_prefixes=prefixes)

    if backend == "rest":
        server = ServerConfig.from_dict(config.get("server"))
        logger.info("Using REST backend at %s", server.query_url)
        return RemoteSqlProvider(server, reserved_prefixes=prefixes)

    if backend == "host":
        if host is None:
            raise ValueError("The host backend requires a host object")
        namespace = (config.get("server") or {}).get("namespace") or "USER"
        logger.info("Using host API backend (namespace %s)", namespace)
        return HostApiProvider(host, namespace=namespace, reserved_prefixes=prefixes)

    raise ValueError(f"Unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}")


__all__ = [
    "AtelierQueryClient",
    "BACKENDS",
    "ClassInfo",
    "ClassInfoProvider",
    "ClassMember",
    "HierarchyGraph",
    "HostApiProvider",
    "RemoteSqlProvider",
    "ResolvedHierarchy",
    "ServerConfig",
    "SourceTextProvider",
    "build_provider",
    "parse_class_source",
]
