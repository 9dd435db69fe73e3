"""PlantUML class-diagram generation.

Public API:
  DiagramService - resolve, render, encode and optionally image a class
  render_class_diagram / render_directory_diagram - pure text generators
  encode_diagram / plantuml_url - server URL encoding
"""

from .class_diagram import render_class_diagram, render_directory_diagram
from .encoder import FALLBACK_ENCODED, encode_bytes, encode_diagram, plantuml_url
from .renderer import fetch_from_server, render_with_jar
from .service import DiagramResult, DiagramService, class_name_from_path

__all__ = [
    "DiagramResult",
    "DiagramService",
    "FALLBACK_ENCODED",
    "class_name_from_path",
    "encode_bytes",
    "encode_diagram",
    "fetch_from_server",
    "plantuml_url",
    "render_class_diagram",
    "render_directory_diagram",
    "render_with_jar",
]
