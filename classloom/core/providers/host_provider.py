"""Host-API backend: class metadata through a host-supplied query function.

The host (an editor extension API, a notebook kernel, ...) exposes a SQL
query function whose calling convention is not known statically. Each
known convention is a ``HostCallShape``. The provider probes the shapes
once, in order, binds to the first that answers, and caches the outcome
for its lifetime. Later fetches never re-probe.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from ..errors import ProviderError, ProviderTransportError
from .base import (
    DEFAULT_RESERVED_PREFIXES,
    ClassInfoProvider,
    is_truthy_flag,
    split_superclasses,
)
from .models import ClassInfo, ClassMember
from .rest_client import rows_from_payload

logger = logging.getLogger(__name__)

PROBE_SQL = "SELECT TOP 1 Name FROM %Dictionary.CompiledClass"

CLASS_SQL = "SELECT Super, Abstract FROM %Dictionary.CompiledClass WHERE ID = ?"

# Every member kind in one round trip; each branch takes the class name once.
MEMBER_SQL = (
    "SELECT Name, Origin, FormalSpec, ReturnType AS Type, 'method' AS MemberType "
    "FROM %Dictionary.CompiledMethod WHERE parent->ID = ? AND Abstract = 0 AND Internal = 0 "
    "AND Stub IS NULL AND ((Origin = parent->ID) OR (Origin != parent->ID AND NotInheritable = 0)) "
    "UNION ALL %PARALLEL "
    "SELECT Name, Origin, FormalSpec, Type, 'query' AS MemberType "
    "FROM %Dictionary.CompiledQuery WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, Type, 'projection' AS MemberType "
    "FROM %Dictionary.CompiledProjection WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, NULL AS Type, 'index' AS MemberType "
    "FROM %Dictionary.CompiledIndex WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, NULL AS Type, 'foreignkey' AS MemberType "
    "FROM %Dictionary.CompiledForeignKey WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, NULL AS Type, 'trigger' AS MemberType "
    "FROM %Dictionary.CompiledTrigger WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, NULL AS Type, 'xdata' AS MemberType "
    "FROM %Dictionary.CompiledXData WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, RuntimeType AS Type, 'property' AS MemberType "
    "FROM %Dictionary.CompiledProperty WHERE parent->ID = ? AND Internal = 0 UNION ALL %PARALLEL "
    "SELECT Name, Origin, NULL AS FormalSpec, Type, 'parameter' AS MemberType "
    "FROM %Dictionary.CompiledParameter WHERE parent->ID = ? AND Internal = 0"
)
MEMBER_SQL_PARAM_COUNT = MEMBER_SQL.count("?")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _lookup_callable(host: Any, path: str) -> Optional[Callable]:
    """Follow a dotted attribute path on the host; None unless it ends callable."""
    obj = host
    for attr in path.split("."):
        obj = getattr(obj, attr, None)
        if obj is None:
            return None
    return obj if callable(obj) else None


class HostCallShape(ABC):
    """One calling convention for the host query function."""

    attribute_path: str = ""

    def __init__(self, namespace: str):
        self._namespace = namespace

    def bind(self, host: Any) -> Optional[Callable]:
        """Return the host function for this shape, or None if absent."""
        return _lookup_callable(host, self.attribute_path)

    @abstractmethod
    async def call(self, fn: Callable, sql: str, parameters: Sequence[Any]) -> Any:
        """Invoke ``fn`` with this shape's argument layout."""
        ...


class ExecuteQueryShape(HostCallShape):
    """``host.server_execute_query({"query": ..., "parameters": [...]})`` -> rows"""

    attribute_path = "server_execute_query"

    async def call(self, fn, sql, parameters):
        return await _maybe_await(fn({"query": sql, "parameters": list(parameters)}))


class AtelierQueryShape(HostCallShape):
    """``host.atelier.query(sql, parameters, namespace)`` -> {"result": {"content": rows}}"""

    attribute_path = "atelier.query"

    async def call(self, fn, sql, parameters):
        return await _maybe_await(fn(sql, list(parameters), self._namespace))


class RunQueryShape(HostCallShape):
    """``host.server_actions.run_query(sql, parameters, namespace)`` -> rows"""

    attribute_path = "server_actions.run_query"

    async def call(self, fn, sql, parameters):
        return await _maybe_await(fn(sql, list(parameters), self._namespace))


DEFAULT_CALL_SHAPES: Tuple[Type[HostCallShape], ...] = (
    ExecuteQueryShape,
    AtelierQueryShape,
    RunQueryShape,
)


def _member_from_row(row: Dict[str, Any], class_name: str) -> ClassMember:
    return ClassMember(
        name=row.get("Name", ""),
        kind=str(row.get("MemberType") or "property").lower(),
        type_signature=row.get("Type") or None,
        formal_spec=row.get("FormalSpec") or None,
        origin_class=row.get("Origin") or class_name,
    )


class HostApiProvider(ClassInfoProvider):
    """Provider that queries through a host-supplied function.

    Args:
        host: Object exposing one of the known query call shapes
        namespace: Namespace passed to shapes that accept one
        call_shapes: Shapes to probe, in priority order
    """

    name = "host"

    def __init__(
        self,
        host: Any,
        namespace: str = "USER",
        call_shapes: Iterable[Type[HostCallShape]] = DEFAULT_CALL_SHAPES,
        reserved_prefixes: Iterable[str] = DEFAULT_RESERVED_PREFIXES,
    ):
        super().__init__(reserved_prefixes)
        self._host = host
        self._shapes: List[HostCallShape] = [s(namespace) for s in call_shapes]

        # Binding is probed once per provider
        self._binding_checked = False
        self._binding: Optional[Tuple[HostCallShape, Callable]] = None
        self._bind_lock = asyncio.Lock()

    @property
    def bound_shape(self) -> Optional[str]:
        """Name of the bound call shape, or None if unbound/unprobed."""
        return type(self._binding[0]).__name__ if self._binding else None

    async def _bind(self) -> Optional[Tuple[HostCallShape, Callable]]:
        if self._binding_checked:
            return self._binding

        async with self._bind_lock:
            if self._binding_checked:
                return self._binding

            for shape in self._shapes:
                fn = shape.bind(self._host)
                if fn is None:
                    continue
                try:
                    await shape.call(fn, PROBE_SQL, [])
                except Exception as e:
                    logger.debug("Host call shape %s failed probe: %s", type(shape).__name__, e)
                    continue
                self._binding = (shape, fn)
                logger.info("Bound host query function via %s", type(shape).__name__)
                break
            else:
                logger.warning("No usable host query function found, host backend unavailable")

            self._binding_checked = True
        return self._binding

    async def query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query through the bound host function and normalise its rows."""
        binding = await self._bind()
        if binding is None:
            raise ProviderTransportError("Host query function unavailable")

        shape, fn = binding
        try:
            result = await shape.call(fn, sql, parameters)
            return rows_from_payload(result)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderTransportError(f"Host query failed: {e}") from e

    async def _fetch(self, class_name: str) -> Optional[ClassInfo]:
        try:
            class_rows = await self.query(CLASS_SQL, [class_name])
            if not class_rows:
                logger.info("Class %s not found via host API", class_name)
                return None

            member_rows = await self.query(MEMBER_SQL, [class_name] * MEMBER_SQL_PARAM_COUNT)
        except ProviderError as e:
            e.class_name = e.class_name or class_name
            raise

        class_row = class_rows[0]
        return ClassInfo.create(
            class_name=class_name,
            direct_superclasses=split_superclasses(class_row.get("Super")),
            members=[_member_from_row(r, class_name) for r in member_rows],
            is_abstract=is_truthy_flag(class_row.get("Abstract")),
        )
