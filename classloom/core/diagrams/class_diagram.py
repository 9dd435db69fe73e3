"""Deterministic PlantUML generator for class hierarchy diagrams.

Takes a resolved hierarchy and produces PlantUML class-diagram markup.
Pure: identical inputs always give byte-identical text.
"""

import logging
from typing import Iterable, List, Sequence

from ..providers.models import ClassInfo, ClassMember, HierarchyGraph

logger = logging.getLogger(__name__)

_PREAMBLE = """@startuml
!pragma diagramType class
scale max 2000 width
skinparam dpi 150
skinparam nodesep 50
skinparam ranksep 50
set namespaceSeparator none
hide empty members

' Add click style for classes
skinparam class {
    BackgroundColor<<click>> White
    BorderColor<<click>> Blue
}
"""

_POSTAMBLE = "@enduml"

# Parent <|-- Child
INHERITANCE_TOKEN = "<|--"

UNTYPED_MEMBER = "Any"
VOID_RETURN = "void"


def format_params(formal_spec: str | None) -> str:
    """Comma-join the trimmed parameter tokens of a formal spec."""
    if not formal_spec:
        return ""
    return ", ".join(p.strip() for p in formal_spec.split(",") if p.strip())


def render_member(member: ClassMember) -> str:
    """One member line, indented for a class block."""
    if member.is_callable:
        params = format_params(member.formal_spec)
        return f"  + {member.name}({params}): {member.type_signature or VOID_RETURN}"
    return f"  + {member.name}: {member.type_signature or UNTYPED_MEMBER}"


def render_class_block(info: ClassInfo) -> str:
    """``class "Name" { ... }`` or a bare one-line declaration when memberless."""
    keyword = "abstract class" if info.is_abstract else "class"
    if not info.members:
        return f'{keyword} "{info.class_name}"\n'

    lines = [f'{keyword} "{info.class_name}" {{']
    lines.extend(render_member(m) for m in info.members)
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_edges(hierarchy: HierarchyGraph) -> List[str]:
    """Inheritance edge lines, one per distinct (parent, child), first-seen order."""
    seen = set()
    edges: List[str] = []
    for child, parents in hierarchy.items():
        for parent in parents:
            edge = f'"{parent}" {INHERITANCE_TOKEN} "{child}"'
            if edge in seen:
                continue
            seen.add(edge)
            edges.append(edge)
    return edges


def _document(classes: Iterable[ClassInfo], hierarchy: HierarchyGraph) -> str:
    blocks = "".join(render_class_block(c) for c in classes)
    edges = render_edges(hierarchy)

    parts = [_PREAMBLE, "\n", blocks, "\n"]
    if edges:
        parts.append("\n".join(edges) + "\n")
    parts.append(_POSTAMBLE)
    return "".join(parts)


def render_class_diagram(
    root: ClassInfo,
    ancestors: Sequence[ClassInfo],
    hierarchy: HierarchyGraph,
) -> str:
    """Render a class and its ancestors as PlantUML.

    Class blocks come in the order ``ancestors`` then ``root``; edges
    follow after all blocks.

    Args:
        root: The class the diagram was requested for
        ancestors: Resolved superclasses, in resolution order
        hierarchy: Class name -> direct superclass names

    Returns:
        PlantUML text from ``@startuml`` to ``@enduml``
    """
    return _document([*ancestors, root], hierarchy)


def render_directory_diagram(classes: Sequence[ClassInfo], hierarchy: HierarchyGraph) -> str:
    """Render an arbitrary set of classes (e.g. every class under a folder)."""
    if not classes:
        logger.warning("Rendering directory diagram with no classes")
    return _document(classes, hierarchy)
