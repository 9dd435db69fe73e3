"""Async HTTP transport for the IRIS Atelier SQL query endpoint.

POST {scheme}://{host}:{port}/api/atelier/v{n}/{namespace}/action/query
with body {"query": sql, "parameters": [...]} and HTTP Basic auth.
Self-signed certificates are accepted unless ``verify_tls`` is set.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..errors import ProviderTransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ServerConfig:
    """Connection settings for an IRIS server."""

    host: str = "localhost"
    port: int = 52773
    namespace: str = "USER"
    username: str = "_SYSTEM"
    password: str = "SYS"
    ssl: bool = False
    verify_tls: bool = False
    api_version: int = 1
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ServerConfig":
        """Build from a ``server`` config section; missing keys keep defaults."""
        data = data or {}
        defaults = cls()
        return cls(
            host=str(data.get("host") or defaults.host),
            port=int(data.get("port") or defaults.port),
            namespace=str(data.get("namespace") or defaults.namespace),
            username=str(data.get("username") or defaults.username),
            password=str(data.get("password") or defaults.password),
            ssl=bool(data.get("ssl", defaults.ssl)),
            verify_tls=bool(data.get("verify_tls", defaults.verify_tls)),
            api_version=int(data.get("api_version") or defaults.api_version),
            timeout=float(data.get("timeout") or defaults.timeout),
        )

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.port}/api/atelier/v{self.api_version}"

    @property
    def query_url(self) -> str:
        return f"{self.base_url}/{self.namespace}/action/query"

    def masked(self) -> Dict[str, Any]:
        """Settings as a dict with the password hidden, for logging."""
        return {
            "host": self.host,
            "port": self.port,
            "namespace": self.namespace,
            "username": self.username,
            "password": "******",
            "ssl": self.ssl,
        }


def rows_from_payload(payload: Any) -> List[Dict[str, Any]]:
    """Normalise a query response to a list of row dicts.

    Accepts the known envelopes:
      - flat list of rows
      - {"result": {"content": [...]}}   (Atelier REST)
      - {"content": [...]}
    Anything else yields an empty list.

    Raises:
        ProviderTransportError: If the envelope carries ``status.errors``
    """
    if payload is None:
        return []

    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)]

    if not isinstance(payload, dict):
        return []

    status = payload.get("status")
    errors = status.get("errors") if isinstance(status, dict) else None
    if errors:
        raise ProviderTransportError(f"Query returned errors: {errors}")

    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        return [r for r in result["content"] if isinstance(r, dict)]
    if isinstance(result, list):
        return [r for r in result if isinstance(r, dict)]
    if isinstance(payload.get("content"), list):
        return [r for r in payload["content"] if isinstance(r, dict)]

    return []


class AtelierQueryClient:
    """Thin async wrapper over ``httpx.AsyncClient`` for SQL queries.

    Args:
        config: Server connection settings
        client: Optional pre-built AsyncClient (tests inject a MockTransport)
    """

    def __init__(self, config: ServerConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._owns_client = client is None
        # Auth is attached per request so injected clients authenticate too
        self._client = client or httpx.AsyncClient(
            verify=config.verify_tls,
            timeout=config.timeout,
            headers={"Content-Type": "application/json"},
        )
        logger.debug("Atelier client configured: %s", config.masked())

    @property
    def config(self) -> ServerConfig:
        return self._config

    async def query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Execute a parameterized SQL query and return its rows.

        Raises:
            ProviderTransportError: On connection failure, non-2xx status,
                invalid JSON, or server-reported query errors
        """
        body = {"query": sql, "parameters": list(parameters)}
        logger.debug("SQL query: %s params=%s", sql, body["parameters"])

        try:
            response = await self._client.post(
                self._config.query_url,
                json=body,
                auth=httpx.BasicAuth(self._config.username, self._config.password),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderTransportError(
                f"Query failed with HTTP {e.response.status_code}: {sql}"
            ) from e
        except httpx.RequestError as e:
            raise ProviderTransportError(f"Query request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderTransportError(f"Query returned invalid JSON: {e}") from e

        rows = rows_from_payload(payload)
        logger.debug("Query returned %d rows", len(rows))
        return rows

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
