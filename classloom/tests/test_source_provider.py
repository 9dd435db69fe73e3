"""Tests for SourceTextProvider: class file lookup, reading and directory scan."""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from classloom.core.errors import ProviderTransportError
from classloom.core.providers.source_provider import SourceTextProvider


# ── Fixtures ──────────────────────────────────────────────────────────────


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    """src/ layout with a two-level hierarchy and one reserved superclass."""
    src = tmp_path / "src"
    _write(src, "App/Model/Order.cls", "Class App.Model.Order Extends App.Model.Base\n{\nProperty Total;\n}\n")
    _write(src, "App/Model/Base.cls", "Class App.Model.Base Extends %Persistent [ Abstract ]\n{\n}\n")
    _write(src, "App/Util/Helper.cls", "Class App.Util.Helper\n{\nClassMethod Run()\n{\n}\n}\n")
    return tmp_path


# ── Tests ─────────────────────────────────────────────────────────────────


class TestFetch:
    def test_fetch_by_index(self, project):
        provider = SourceTextProvider([project])
        info = asyncio.run(provider.fetch("App.Model.Order"))

        assert info.class_name == "App.Model.Order"
        assert info.direct_superclasses == ("App.Model.Base",)
        assert [m.name for m in info.members] == ["Total"]

    def test_missing_class_returns_none(self, project):
        provider = SourceTextProvider([project])
        assert asyncio.run(provider.fetch("App.Model.Nope")) is None

    def test_reserved_prefix_skips_reader(self, project):
        reader = MagicMock()
        provider = SourceTextProvider([project], reader=reader)

        info = asyncio.run(provider.fetch("%Persistent"))

        assert info.class_name == "%Persistent"
        assert info.members == ()
        reader.assert_not_called()

    def test_custom_reserved_prefixes(self, project):
        provider = SourceTextProvider([project], reserved_prefixes=("App.Util.",))
        info = asyncio.run(provider.fetch("App.Util.Helper"))
        assert info.members == ()

    def test_reader_error_is_transport_error(self, project):
        calls = {"n": 0}

        def flaky_reader(path):
            # Index build reads succeed; the fetch read fails
            calls["n"] += 1
            if calls["n"] > 3:
                raise OSError("disk gone")
            return Path(path).read_text(encoding="utf-8")

        provider = SourceTextProvider([project], reader=flaky_reader)
        with pytest.raises(ProviderTransportError) as exc_info:
            asyncio.run(provider.fetch("App.Model.Order"))
        assert exc_info.value.class_name == "App.Model.Order"

    def test_injected_reader_used(self, project):
        texts = {}

        def reader(path):
            texts[path] = Path(path).read_text(encoding="utf-8")
            return texts[path]

        provider = SourceTextProvider([project], reader=reader)
        asyncio.run(provider.fetch("App.Model.Base"))
        assert any(p.endswith("Base.cls") for p in texts)


class TestFindClassFile:
    def test_path_guess_under_src(self, tmp_path):
        path = _write(tmp_path / "src", "Pkg/Thing.cls", "Class Pkg.Thing\n{\n}\n")
        # Root is a file elsewhere: the index is empty but the guesses find it
        provider = SourceTextProvider([tmp_path / "src" / "missing"])
        provider._index = {}

        found = asyncio.run(provider.find_class_file("Pkg.Thing"))
        assert found == path

    def test_relative_root_searches_parents(self, tmp_path, monkeypatch):
        path = _write(tmp_path / "src", "Pkg/Thing.cls", "Class Pkg.Thing\n{\n}\n")
        workdir = tmp_path / "tools"
        workdir.mkdir()
        monkeypatch.chdir(workdir)
        provider = SourceTextProvider(["."])
        provider._index = {}

        assert asyncio.run(provider.find_class_file("Pkg.Thing")) == path

    def test_parent_climb_is_bounded(self, tmp_path):
        _write(tmp_path, "Pkg/Thing.cls", "Class Pkg.Thing\n{\n}\n")
        deep = tmp_path / "a" / "b" / "c" / "d"
        deep.mkdir(parents=True)
        provider = SourceTextProvider([deep])
        provider._index = {}

        assert asyncio.run(provider.find_class_file("Pkg.Thing")) is None
        dirs = {c.parent.parent for c in provider._candidate_paths("Pkg.Thing")}
        assert tmp_path not in dirs

    def test_declared_name_mismatch(self, tmp_path):
        _write(tmp_path, "Pkg/Thing.cls", "Class Pkg.Other\n{\n}\n")
        provider = SourceTextProvider([tmp_path])
        provider._index = {}

        assert asyncio.run(provider.fetch("Pkg.Thing")) is None


class TestScan:
    def test_scan_collects_classes_and_hierarchy(self, project):
        provider = SourceTextProvider([project])
        classes, hierarchy = asyncio.run(provider.scan())

        names = {c.class_name for c in classes}
        assert names == {"App.Model.Order", "App.Model.Base", "App.Util.Helper"}
        assert hierarchy == {
            "App.Model.Base": ["%Persistent"],
            "App.Model.Order": ["App.Model.Base"],
        }

    def test_scan_skips_output_dirs(self, project):
        _write(project, "out_classdiagram/Copy.cls", "Class Copy.Me\n{\n}\n")
        provider = SourceTextProvider([project])
        classes, _ = asyncio.run(provider.scan())
        assert "Copy.Me" not in {c.class_name for c in classes}

    def test_missing_root_is_empty(self, tmp_path):
        provider = SourceTextProvider([tmp_path / "nowhere"])
        classes, hierarchy = asyncio.run(provider.scan())
        assert classes == []
        assert hierarchy == {}
