"""File backend: class metadata from local ``.cls`` source files.

Class names are located through an index built once per provider by
scanning the configured roots for ``*.cls`` files, then through path
guesses derived from the dotted name (``App.Model.Order`` ->
``App/Model/Order.cls``) under each root, its ``src/`` child and up to
``PARENT_SEARCH_LEVELS`` parent directories.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import ProviderTransportError
from .base import DEFAULT_RESERVED_PREFIXES, ClassInfoProvider
from .models import ClassInfo, HierarchyGraph
from .source_parser import parse_class_header, parse_class_source

logger = logging.getLogger(__name__)

CLASS_FILE_SUFFIX = ".cls"

# Directories never worth descending into
_SKIP_DIRS = {".git", "node_modules", "out", "out_classdiagram", "__pycache__", ".vscode"}

# How far above a root the path guesses may climb
PARENT_SEARCH_LEVELS = 2


def read_text(path: str) -> str:
    """Default ``read(path) -> text`` collaborator."""
    return Path(path).read_text(encoding="utf-8", errors="replace")


def iter_class_files(root: Path) -> Iterable[Path]:
    """Yield every ``.cls`` file under ``root`` (or ``root`` itself if a file)."""
    if root.is_file():
        if root.suffix.lower() == CLASS_FILE_SUFFIX:
            yield root
        return

    for path in sorted(root.rglob(f"*{CLASS_FILE_SUFFIX}")):
        if any(part in _SKIP_DIRS for part in path.parts):
            continue
        yield path


class SourceTextProvider(ClassInfoProvider):
    """Provider that reads class definitions from ``.cls`` files.

    Args:
        roots: Files or directories to search
        reader: ``read(path) -> text`` collaborator (defaults to UTF-8 file read)
        reserved_prefixes: Class name prefixes to short-circuit as placeholders
    """

    name = "source"

    def __init__(
        self,
        roots: Iterable[str | Path],
        reader: Optional[Callable[[str], str]] = None,
        reserved_prefixes: Iterable[str] = DEFAULT_RESERVED_PREFIXES,
    ):
        super().__init__(reserved_prefixes)
        self._roots: List[Path] = [Path(r) for r in roots]
        self._read = reader or read_text
        self._index: Optional[Dict[str, Path]] = None
        self._index_lock = asyncio.Lock()

    # ── Lookup ────────────────────────────────────────────────────────

    async def _fetch(self, class_name: str) -> Optional[ClassInfo]:
        path = await self.find_class_file(class_name)
        if path is None:
            logger.info("Class file not found for %s", class_name)
            return None

        try:
            text = await asyncio.to_thread(self._read, str(path))
        except OSError as e:
            raise ProviderTransportError(f"Cannot read {path}: {e}", class_name) from e

        info = parse_class_source(text, str(path))
        if info is None or info.class_name != class_name:
            logger.warning(
                "File %s does not declare class %s (found %s)",
                path, class_name, info.class_name if info else None,
            )
            return None
        return info

    async def find_class_file(self, class_name: str) -> Optional[Path]:
        """Locate the ``.cls`` file declaring ``class_name``."""
        index = await self._get_index()
        if class_name in index:
            return index[class_name]

        for candidate in self._candidate_paths(class_name):
            if candidate.is_file():
                return candidate
        return None

    def _candidate_paths(self, class_name: str) -> List[Path]:
        """Path guesses for a dotted class name, most specific first."""
        rel = Path(*class_name.split(".")).with_suffix(CLASS_FILE_SUFFIX)
        package_segments = class_name.split(".")[:-1]

        candidates: List[Path] = []
        for root in self._roots:
            root = root.resolve()
            base = root if root.is_dir() else root.parent
            search_dirs = [base, *list(base.parents)[:PARENT_SEARCH_LEVELS]]
            for directory in search_dirs:
                candidates.append(directory / rel)
                candidates.append(directory / "src" / rel)
                for segment in package_segments:
                    candidates.append(directory.parent / segment / rel)
        # Preserve first occurrence order
        return list(dict.fromkeys(candidates))

    async def _get_index(self) -> Dict[str, Path]:
        if self._index is not None:
            return self._index
        async with self._index_lock:
            if self._index is None:
                self._index = await asyncio.to_thread(self._build_index)
                logger.info("Indexed %d class files under %d roots", len(self._index), len(self._roots))
        return self._index

    def _build_index(self) -> Dict[str, Path]:
        """Map declared class names to files by reading each file's header."""
        index: Dict[str, Path] = {}
        for root in self._roots:
            if not root.exists():
                logger.warning("Source root does not exist: %s", root)
                continue
            for path in iter_class_files(root):
                try:
                    name = parse_class_header(self._read(str(path)))
                except OSError as e:
                    logger.warning("Cannot read %s: %s", path, e)
                    continue
                if name and name not in index:
                    index[name] = path
        return index

    # ── Directory mode ───────────────────────────────────────────────

    async def scan(self) -> Tuple[List[ClassInfo], HierarchyGraph]:
        """Parse every class file under the roots.

        Returns:
            (classes in file order, hierarchy graph of classes with superclasses)
        """
        index = await self._get_index()
        classes: List[ClassInfo] = []
        hierarchy: HierarchyGraph = {}

        for class_name, path in index.items():
            try:
                text = await asyncio.to_thread(self._read, str(path))
            except OSError as e:
                logger.warning("Cannot read %s: %s", path, e)
                continue
            info = parse_class_source(text, str(path))
            if info is None:
                continue
            classes.append(info)
            if info.direct_superclasses:
                hierarchy[info.class_name] = list(info.direct_superclasses)

        return classes, hierarchy
