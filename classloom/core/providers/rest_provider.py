"""REST backend: class metadata from the ``%Dictionary`` tables over HTTP.

Runs one class-row query (Super, Abstract) and four member queries per
class. The member queries are issued concurrently once the class row
confirms the class exists.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .base import (
    DEFAULT_RESERVED_PREFIXES,
    ClassInfoProvider,
    is_truthy_flag,
    split_superclasses,
)
from .models import ClassInfo, ClassMember
from .rest_client import AtelierQueryClient, ServerConfig

logger = logging.getLogger(__name__)

CLASS_SQL = "SELECT Super, Abstract FROM %Dictionary.ClassDefinition WHERE Name = ?"
PROPERTY_SQL = "SELECT Name, Type, Parameters FROM %Dictionary.PropertyDefinition WHERE Parent = ?"
PARAMETER_SQL = "SELECT Name, Type FROM %Dictionary.ParameterDefinition WHERE Parent = ?"
METHOD_SQL = "SELECT Name, ReturnType, FormalSpec FROM %Dictionary.MethodDefinition WHERE Parent = ?"
INDEX_SQL = "SELECT Name, Properties FROM %Dictionary.IndexDefinition WHERE Parent = ?"


def _property_member(row: Dict[str, Any], class_name: str) -> ClassMember:
    return ClassMember(
        name=row.get("Name", ""),
        kind="property",
        type_signature=row.get("Type") or row.get("Parameters") or None,
        origin_class=class_name,
    )


def _parameter_member(row: Dict[str, Any], class_name: str) -> ClassMember:
    return ClassMember(
        name=row.get("Name", ""),
        kind="parameter",
        type_signature=row.get("Type") or None,
        origin_class=class_name,
    )


def _method_member(row: Dict[str, Any], class_name: str) -> ClassMember:
    return ClassMember(
        name=row.get("Name", ""),
        kind="method",
        type_signature=row.get("ReturnType") or None,
        formal_spec=row.get("FormalSpec") or None,
        origin_class=class_name,
    )


def _index_member(row: Dict[str, Any], class_name: str) -> ClassMember:
    on = row.get("Properties")
    return ClassMember(
        name=row.get("Name", ""),
        kind="index",
        type_signature=f"On {on}" if on else None,
        origin_class=class_name,
    )


class RemoteSqlProvider(ClassInfoProvider):
    """Provider backed by the IRIS Atelier REST query endpoint.

    Use as an async context manager so the HTTP client is closed:

        async with RemoteSqlProvider(ServerConfig(host="iris")) as provider:
            info = await provider.fetch("App.Model.Order")
    """

    name = "rest"

    def __init__(
        self,
        config: ServerConfig,
        client: Optional[httpx.AsyncClient] = None,
        reserved_prefixes: Iterable[str] = DEFAULT_RESERVED_PREFIXES,
    ):
        super().__init__(reserved_prefixes)
        self._client = AtelierQueryClient(config, client=client)

    async def _fetch(self, class_name: str) -> Optional[ClassInfo]:
        class_rows = await self._client.query(CLASS_SQL, [class_name])
        if not class_rows:
            logger.info("Class %s not found in dictionary", class_name)
            return None

        class_row = class_rows[0]
        superclasses = split_superclasses(class_row.get("Super"))
        is_abstract = is_truthy_flag(class_row.get("Abstract"))

        properties, parameters, methods, indexes = await asyncio.gather(
            self._client.query(PROPERTY_SQL, [class_name]),
            self._client.query(PARAMETER_SQL, [class_name]),
            self._client.query(METHOD_SQL, [class_name]),
            self._client.query(INDEX_SQL, [class_name]),
        )

        members: List[ClassMember] = []
        members.extend(_property_member(r, class_name) for r in properties)
        members.extend(_parameter_member(r, class_name) for r in parameters)
        members.extend(_index_member(r, class_name) for r in indexes)
        members.extend(_method_member(r, class_name) for r in methods)

        logger.info(
            "Fetched %s: %d superclasses, %d members%s",
            class_name, len(superclasses), len(members), " (abstract)" if is_abstract else "",
        )
        return ClassInfo.create(
            class_name=class_name,
            direct_superclasses=superclasses,
            members=members,
            is_abstract=is_abstract,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
