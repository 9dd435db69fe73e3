"""DiagramService: orchestrator for class-diagram generation.

resolve hierarchy -> render PlantUML -> encode URL token, then optionally
write the ``.puml`` file and hand it to the JAR or the PlantUML server.

Only rendering-stage failures reach the caller (as RenderInvocationError
naming the class and stage). Per-class provider failures are absorbed by
the resolver.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import RenderInvocationError
from ..hierarchy import HierarchyResolver
from ..providers.base import ClassInfoProvider
from ..providers.models import ResolvedHierarchy
from ..providers.source_provider import CLASS_FILE_SUFFIX, SourceTextProvider
from .class_diagram import render_class_diagram, render_directory_diagram
from .encoder import DEFAULT_SERVER_URL, encode_diagram
from .renderer import fetch_from_server, render_with_jar

logger = logging.getLogger(__name__)

RENDER_MODES = {"jar", "server"}

_DEFAULT_SETTINGS: Dict[str, Any] = {
    "output_dir": "out_classdiagram",
    "server_url": DEFAULT_SERVER_URL,
    "format": "svg",
    "jar_path": None,
}


@dataclass(frozen=True)
class DiagramResult:
    """One generated diagram."""

    class_name: str
    puml: str
    encoded: str
    url: str
    resolved: Optional[ResolvedHierarchy] = None


def class_name_from_path(path: str | Path) -> Optional[str]:
    """Dotted class name for a ``.cls`` file below a ``src`` directory.

    ``/repo/src/App/Model/Order.cls`` -> ``App.Model.Order``. Without a
    ``src`` ancestor the bare file stem is returned; non-class files give None.
    """
    path = Path(path)
    if path.suffix.lower() != CLASS_FILE_SUFFIX:
        return None

    segments = [path.stem]
    for parent in path.parents:
        if parent.name == "src":
            return ".".join(segments)
        if parent == parent.parent or not parent.name:
            break
        segments.insert(0, parent.name)

    return path.stem


class DiagramService:
    """Generates class diagrams through one provider.

    Args:
        provider: Backend chosen for this session
        settings: ``diagram`` config section (output_dir, server_url,
            format, jar_path); missing keys use defaults
        max_concurrency: Passed to HierarchyResolver
    """

    def __init__(
        self,
        provider: ClassInfoProvider,
        settings: Optional[Dict[str, Any]] = None,
        max_concurrency: int = 1,
    ):
        self._provider = provider
        self._settings = {**_DEFAULT_SETTINGS, **{k: v for k, v in (settings or {}).items() if v is not None}}
        self._resolver = HierarchyResolver(provider, max_concurrency=max_concurrency)

    @property
    def settings(self) -> Dict[str, Any]:
        return dict(self._settings)

    def _url_for(self, encoded: str) -> str:
        server = str(self._settings["server_url"]).rstrip("/")
        return f"{server}/{self._settings['format']}/{encoded}"

    async def class_diagram(self, class_name: str, max_depth: Optional[int] = None) -> DiagramResult:
        """Resolve, render and encode the diagram for one class."""
        resolved = await self._resolver.resolve(class_name, max_depth=max_depth)
        puml = render_class_diagram(resolved.root, resolved.ancestors, resolved.hierarchy)
        encoded = encode_diagram(puml)
        return DiagramResult(
            class_name=class_name,
            puml=puml,
            encoded=encoded,
            url=self._url_for(encoded),
            resolved=resolved,
        )

    async def directory_diagram(
        self,
        source_provider: SourceTextProvider,
        name: str = "directory",
    ) -> DiagramResult:
        """Render every class found under a source provider's roots."""
        classes, hierarchy = await source_provider.scan()
        logger.info("Directory diagram: %d classes, %d with superclasses", len(classes), len(hierarchy))
        puml = render_directory_diagram(classes, hierarchy)
        encoded = encode_diagram(puml)
        return DiagramResult(class_name=name, puml=puml, encoded=encoded, url=self._url_for(encoded))

    def write_puml(self, result: DiagramResult, output_dir: Optional[str | Path] = None) -> Path:
        """Write ``<ClassName>.puml`` into the output directory.

        Raises:
            RenderInvocationError: If the file cannot be written (stage "write").
        """
        out_dir = Path(output_dir or self._settings["output_dir"])
        target = out_dir / f"{result.class_name}.puml"
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(result.puml, encoding="utf-8")
        except OSError as e:
            raise RenderInvocationError(str(e), stage="write", class_name=result.class_name) from e
        logger.info("Wrote %s", target)
        return target

    def render(
        self,
        result: DiagramResult,
        mode: str,
        output_dir: Optional[str | Path] = None,
    ) -> Path:
        """Render a diagram to an image file with the JAR or the server.

        Returns:
            Path of the written image.

        Raises:
            ValueError: Unknown mode.
            RenderInvocationError: Rendering failed; carries the class name.
        """
        if mode not in RENDER_MODES:
            raise ValueError(f"Unknown render mode '{mode}'. Must be one of: {', '.join(sorted(RENDER_MODES))}")

        puml_path = self.write_puml(result, output_dir)
        fmt = self._settings["format"]

        try:
            if mode == "jar":
                return render_with_jar(puml_path, self._settings.get("jar_path"), fmt=fmt)

            image = fetch_from_server(result.url)
            image_path = puml_path.with_suffix(f".{fmt}")
            try:
                image_path.write_bytes(image)
            except OSError as e:
                raise RenderInvocationError(str(e), stage="write") from e
            logger.info("Rendered %s via PlantUML server", image_path)
            return image_path
        except RenderInvocationError as e:
            e.class_name = e.class_name or result.class_name
            logger.error("%s", e)
            raise
