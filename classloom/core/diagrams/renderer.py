"""PlantUML rendering boundary: local JAR or HTTP server.

Local:  ``java -jar plantuml.jar -t<fmt> <file.puml>`` writes ``<file>.<fmt>``
        next to the input file.
Server: GET ``{server}/{fmt}/{encoded}`` (see ``encoder.plantuml_url``).

Both raise RenderInvocationError on failure; there is no silent fallback
from one mode to the other.

JAR location resolution order:
  1. explicit ``jar_path`` argument
  2. PLANTUML_JAR_PATH env var
  3. tools/plantuml/plantuml.jar (repo-local)
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import httpx

from ..errors import RenderInvocationError

logger = logging.getLogger(__name__)

_DEFAULT_JAR_PATH = Path(__file__).parents[3] / "tools" / "plantuml" / "plantuml.jar"

JAR_TIMEOUT = 120
SERVER_TIMEOUT = 30.0


def resolve_jar_path(jar_path: Optional[str | Path] = None) -> Optional[Path]:
    """Return the PlantUML JAR path if it exists, else None."""
    candidate = jar_path or os.environ.get("PLANTUML_JAR_PATH")
    if candidate:
        p = Path(candidate)
        return p if p.is_file() else None
    return _DEFAULT_JAR_PATH if _DEFAULT_JAR_PATH.is_file() else None


# ---------------------------------------------------------------------------
# Local JAR rendering
# ---------------------------------------------------------------------------


def render_with_jar(
    puml_path: str | Path,
    jar_path: Optional[str | Path] = None,
    fmt: str = "svg",
) -> Path:
    """Render a ``.puml`` file with the local PlantUML JAR.

    Args:
        puml_path: Diagram source file
        jar_path: PlantUML JAR; see module docstring for the lookup order
        fmt: Output format passed as ``-t<fmt>``

    Returns:
        Path of the produced image (``puml_path`` with the ``fmt`` suffix).

    Raises:
        RenderInvocationError: JAR or java missing, timeout, or non-zero exit.
    """
    puml_path = Path(puml_path)
    jar = resolve_jar_path(jar_path)
    if jar is None:
        raise RenderInvocationError(
            f"PlantUML JAR not found ({jar_path or 'PLANTUML_JAR_PATH unset'})", stage="jar"
        )
    if shutil.which("java") is None:
        raise RenderInvocationError("Java not in PATH", stage="jar")

    cmd = ["java", "-Djava.awt.headless=true", "-jar", str(jar), f"-t{fmt}", str(puml_path)]
    logger.debug("Running %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=JAR_TIMEOUT)
    except subprocess.TimeoutExpired as e:
        raise RenderInvocationError(f"PlantUML JAR timed out after {JAR_TIMEOUT}s", stage="jar") from e
    except OSError as e:
        raise RenderInvocationError(f"PlantUML JAR execution failed: {e}", stage="jar") from e

    stderr = result.stderr.decode("utf-8", errors="replace").strip()
    if result.returncode != 0:
        raise RenderInvocationError(
            f"PlantUML JAR exited with code {result.returncode}",
            stage="jar",
            stderr=stderr,
        )

    output = puml_path.with_suffix(f".{fmt}")
    logger.info("Rendered %s via local JAR", output)
    return output


# ---------------------------------------------------------------------------
# HTTP server rendering
# ---------------------------------------------------------------------------


def fetch_from_server(url: str, client: Optional[httpx.Client] = None) -> bytes:
    """GET a rendered diagram from a PlantUML server URL.

    Raises:
        RenderInvocationError: On request failure or a non-200 response.
    """
    logger.debug("Fetching diagram from PlantUML server (url len=%d)", len(url))

    try:
        if client is not None:
            response = client.get(url, timeout=SERVER_TIMEOUT, follow_redirects=True)
        else:
            response = httpx.get(url, timeout=SERVER_TIMEOUT, follow_redirects=True)
    except httpx.RequestError as e:
        raise RenderInvocationError(f"PlantUML server request failed: {e}", stage="server") from e

    if response.status_code != 200:
        raise RenderInvocationError(
            f"PlantUML server returned {response.status_code}",
            stage="server",
            stderr=response.text[:300],
        )
    return response.content
