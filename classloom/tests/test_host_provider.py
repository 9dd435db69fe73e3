"""Tests for HostApiProvider: call-shape probing, binding and row mapping.

Hosts are SimpleNamespace objects so that only the attributes a test
defines exist (a MagicMock would answer every shape).
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from classloom.core.errors import ProviderTransportError
from classloom.core.hierarchy import HierarchyResolver
from classloom.core.providers.host_provider import (
    CLASS_SQL,
    MEMBER_SQL,
    MEMBER_SQL_PARAM_COUNT,
    PROBE_SQL,
    HostApiProvider,
)


# ── Fixtures ──────────────────────────────────────────────────────────────


CLASS_ROWS = [{"Super": "App.Model.Base", "Abstract": "0"}]
MEMBER_ROWS = [
    {"Name": "Total", "Origin": "App.Model.Order", "FormalSpec": None, "Type": "%Numeric", "MemberType": "property"},
    {"Name": "Place", "Origin": "App.Model.Base", "FormalSpec": "pForce:%Boolean", "Type": "%Status", "MemberType": "method"},
]


def _rows_for(sql):
    if sql == PROBE_SQL:
        return [{"Name": "App.Model.Order"}]
    if sql == CLASS_SQL:
        return CLASS_ROWS
    if sql == MEMBER_SQL:
        return MEMBER_ROWS
    return []


def _execute_query_host():
    """Host exposing only the dict-argument shape, returning flat rows."""
    calls = []

    def server_execute_query(request):
        calls.append(request)
        return _rows_for(request["query"])

    return SimpleNamespace(server_execute_query=server_execute_query), calls


def _atelier_host(async_result=False):
    """Host exposing atelier.query(sql, params, ns) with the nested envelope."""
    calls = []

    def query(sql, params, namespace):
        calls.append((sql, params, namespace))
        payload = {"result": {"content": _rows_for(sql)}}
        if async_result:
            async def _later():
                return payload
            return _later()
        return payload

    return SimpleNamespace(atelier=SimpleNamespace(query=query)), calls


# ── Tests: binding ────────────────────────────────────────────────────────


class TestBinding:
    def test_binds_execute_query_shape(self):
        host, calls = _execute_query_host()
        provider = HostApiProvider(host)

        info = asyncio.run(provider.fetch("App.Model.Order"))

        assert provider.bound_shape == "ExecuteQueryShape"
        assert info.direct_superclasses == ("App.Model.Base",)
        assert calls[0] == {"query": PROBE_SQL, "parameters": []}

    def test_binds_atelier_shape_with_namespace(self):
        host, calls = _atelier_host()
        provider = HostApiProvider(host, namespace="APP")

        asyncio.run(provider.fetch("App.Model.Order"))

        assert provider.bound_shape == "AtelierQueryShape"
        assert all(ns == "APP" for _, _, ns in calls)

    def test_awaitable_host_result(self):
        host, _ = _atelier_host(async_result=True)
        provider = HostApiProvider(host)

        info = asyncio.run(provider.fetch("App.Model.Order"))

        assert len(info.members) == 2

    def test_run_query_shape(self):
        run_query = MagicMock(side_effect=lambda sql, params, ns: _rows_for(sql))
        host = SimpleNamespace(server_actions=SimpleNamespace(run_query=run_query))
        provider = HostApiProvider(host)

        asyncio.run(provider.fetch("App.Model.Order"))

        assert provider.bound_shape == "RunQueryShape"

    def test_failing_shape_falls_through_to_next(self):
        def broken(request):
            raise TypeError("wrong signature")

        atelier_host, _ = _atelier_host()
        host = SimpleNamespace(server_execute_query=broken, atelier=atelier_host.atelier)
        provider = HostApiProvider(host)

        asyncio.run(provider.fetch("App.Model.Order"))

        assert provider.bound_shape == "AtelierQueryShape"

    def test_probe_happens_once(self):
        host, calls = _execute_query_host()
        provider = HostApiProvider(host)

        async def run():
            await provider.fetch("App.Model.Order")
            await provider.fetch("App.Model.Base")

        asyncio.run(run())

        probes = [c for c in calls if c["query"] == PROBE_SQL]
        assert len(probes) == 1

    def test_no_usable_shape_raises_without_reprobing(self):
        host = SimpleNamespace(unrelated=lambda: None)
        provider = HostApiProvider(host)

        async def run():
            for _ in range(2):
                with pytest.raises(ProviderTransportError):
                    await provider.fetch("App.Model.Order")

        asyncio.run(run())
        assert provider.bound_shape is None
        assert provider._binding_checked is True

    def test_reserved_class_skips_probe(self):
        host, calls = _execute_query_host()
        provider = HostApiProvider(host)

        asyncio.run(provider.fetch("%Persistent"))

        assert calls == []


# ── Tests: queries and mapping ────────────────────────────────────────────


class TestFetch:
    def test_member_query_parameters(self):
        host, calls = _execute_query_host()
        provider = HostApiProvider(host)

        asyncio.run(provider.fetch("App.Model.Order"))

        member_call = next(c for c in calls if c["query"] == MEMBER_SQL)
        assert member_call["parameters"] == ["App.Model.Order"] * MEMBER_SQL_PARAM_COUNT
        assert MEMBER_SQL_PARAM_COUNT == 9

    def test_members_mapped(self):
        host, _ = _execute_query_host()
        info = asyncio.run(HostApiProvider(host).fetch("App.Model.Order"))

        place = next(m for m in info.members if m.name == "Place")
        assert place.kind == "method"
        assert place.formal_spec == "pForce:%Boolean"
        assert place.origin_class == "App.Model.Base"
        assert info.is_abstract is False

    def test_missing_class_returns_none(self):
        def server_execute_query(request):
            return [{"Name": "x"}] if request["query"] == PROBE_SQL else []

        provider = HostApiProvider(SimpleNamespace(server_execute_query=server_execute_query))
        assert asyncio.run(provider.fetch("App.Missing")) is None

    def test_host_failure_after_binding_is_transport_error(self):
        def server_execute_query(request):
            if request["query"] == PROBE_SQL:
                return []
            raise RuntimeError("host crashed")

        provider = HostApiProvider(SimpleNamespace(server_execute_query=server_execute_query))
        with pytest.raises(ProviderTransportError) as exc_info:
            asyncio.run(provider.fetch("App.Model.Order"))
        assert exc_info.value.class_name == "App.Model.Order"

    def test_plain_string_status_is_not_an_error(self):
        def server_execute_query(request):
            if request["query"] == CLASS_SQL:
                return {"status": "OK", "result": {"content": CLASS_ROWS}}
            return {"status": "OK", "result": {"content": []}}

        provider = HostApiProvider(SimpleNamespace(server_execute_query=server_execute_query))
        info = asyncio.run(provider.fetch("App.Model.Order"))
        assert info.direct_superclasses == ("App.Model.Base",)

    def test_unreadable_payload_is_transport_error(self):
        class BrokenEnvelope(dict):
            def get(self, key, default=None):
                raise KeyError(key)

        def server_execute_query(request):
            return [] if request["query"] == PROBE_SQL else BrokenEnvelope()

        provider = HostApiProvider(SimpleNamespace(server_execute_query=server_execute_query))
        with pytest.raises(ProviderTransportError):
            asyncio.run(provider.fetch("App.Model.Order"))


# ── Resolution through a host ────────────────────────────────────────────


class TestResolveThroughHost:
    def test_status_string_envelope_yields_placeholder_root(self):
        def server_execute_query(request):
            return {"status": "OK", "result": {"content": []}}

        provider = HostApiProvider(SimpleNamespace(server_execute_query=server_execute_query))
        result = asyncio.run(HierarchyResolver(provider).resolve("App.Model.Order"))

        assert result.root.class_name == "App.Model.Order"
        assert result.root.members == ()
        assert result.ancestors == ()
