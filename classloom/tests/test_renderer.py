"""Tests for the PlantUML rendering boundary (JAR subprocess and HTTP server)."""

import subprocess
from unittest.mock import MagicMock, patch

import httpx
import pytest

from classloom.core.diagrams import renderer
from classloom.core.diagrams.renderer import fetch_from_server, render_with_jar, resolve_jar_path
from classloom.core.errors import RenderInvocationError


@pytest.fixture
def jar(tmp_path):
    path = tmp_path / "plantuml.jar"
    path.write_bytes(b"PK")
    return path


@pytest.fixture
def puml(tmp_path):
    path = tmp_path / "App.Model.Order.puml"
    path.write_text("@startuml\n@enduml", encoding="utf-8")
    return path


class TestResolveJarPath:
    def test_explicit_path(self, jar):
        assert resolve_jar_path(jar) == jar

    def test_missing_explicit_path(self, tmp_path):
        assert resolve_jar_path(tmp_path / "nope.jar") is None

    def test_env_var(self, jar, monkeypatch):
        monkeypatch.setenv("PLANTUML_JAR_PATH", str(jar))
        assert resolve_jar_path() == jar


class TestRenderWithJar:
    def test_success_returns_image_path(self, jar, puml):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"", stderr=b"")
        with patch.object(renderer.shutil, "which", return_value="/usr/bin/java"), \
                patch.object(renderer.subprocess, "run", return_value=completed) as run:
            output = render_with_jar(puml, jar)

        assert output == puml.with_suffix(".svg")
        cmd = run.call_args[0][0]
        assert cmd[0] == "java"
        assert cmd[-3:] == [str(jar), "-tsvg", str(puml)]

    def test_format_flag(self, jar, puml):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"", stderr=b"")
        with patch.object(renderer.shutil, "which", return_value="/usr/bin/java"), \
                patch.object(renderer.subprocess, "run", return_value=completed) as run:
            output = render_with_jar(puml, jar, fmt="png")

        assert "-tpng" in run.call_args[0][0]
        assert output.suffix == ".png"

    def test_missing_jar(self, tmp_path, puml):
        with pytest.raises(RenderInvocationError) as exc_info:
            render_with_jar(puml, tmp_path / "missing.jar")
        assert exc_info.value.stage == "jar"

    def test_missing_java(self, jar, puml):
        with patch.object(renderer.shutil, "which", return_value=None):
            with pytest.raises(RenderInvocationError, match="Java not in PATH"):
                render_with_jar(puml, jar)

    def test_nonzero_exit_carries_stderr(self, jar, puml):
        completed = subprocess.CompletedProcess(args=[], returncode=1, stdout=b"", stderr=b"Syntax error")
        with patch.object(renderer.shutil, "which", return_value="/usr/bin/java"), \
                patch.object(renderer.subprocess, "run", return_value=completed):
            with pytest.raises(RenderInvocationError) as exc_info:
                render_with_jar(puml, jar)
        assert exc_info.value.stderr == "Syntax error"

    def test_timeout(self, jar, puml):
        with patch.object(renderer.shutil, "which", return_value="/usr/bin/java"), \
                patch.object(renderer.subprocess, "run", side_effect=subprocess.TimeoutExpired("java", 1)):
            with pytest.raises(RenderInvocationError, match="timed out"):
                render_with_jar(puml, jar)


class TestFetchFromServer:
    def _client(self, handler):
        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_success(self):
        client = self._client(lambda request: httpx.Response(200, content=b"<svg/>"))
        assert fetch_from_server("https://example.org/plantuml/svg/abc", client=client) == b"<svg/>"

    def test_error_status(self):
        client = self._client(lambda request: httpx.Response(400, text="Bad Request"))
        with pytest.raises(RenderInvocationError) as exc_info:
            fetch_from_server("https://example.org/plantuml/svg/abc", client=client)
        assert exc_info.value.stage == "server"
        assert "400" in str(exc_info.value)

    def test_request_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(RenderInvocationError, match="unreachable"):
            fetch_from_server("https://example.org/plantuml/svg/abc", client=self._client(handler))

    def test_default_client_uses_httpx_get(self):
        response = MagicMock(status_code=200, content=b"img")
        with patch.object(renderer.httpx, "get", return_value=response) as get:
            assert fetch_from_server("https://example.org/x") == b"img"
        get.assert_called_once()


class TestRenderInvocationError:
    def test_str_names_stage_and_class(self):
        err = RenderInvocationError("exit 1", stage="jar", class_name="App.Model.Order")
        assert str(err) == "[jar] diagram generation failed for class App.Model.Order: exit 1"

    def test_is_runtime_error(self):
        assert isinstance(RenderInvocationError("x"), RuntimeError)
