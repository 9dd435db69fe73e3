"""Structural extraction of class metadata from ObjectScript ``.cls`` text.

This is not an ObjectScript parser. Only the
following declarations are recognised, each at the start of a line:

    Class <Name> [Extends <Super> | Extends (<S1>, <S2>)] [[<keywords>]]
    Property <name> [As <type>]
    Parameter <name> [As <type>] [= <value>]
    [Class]Method <name>(<formal spec>) [As <return type>]
    Index <name> On <property>

Everything else (bodies, XData, Storage, doc comments) is ignored.
"""

import logging
import re
from typing import List, Optional

from .base import split_superclasses
from .models import ClassInfo, ClassMember

logger = logging.getLogger(__name__)

# Defaults substituted for declarations without a type clause
UNTYPED_PROPERTY = "Any"
VOID_RETURN = "void"
DEFAULT_PARAMETER_TYPE = "String"

_CLASS_HEADER = re.compile(
    r"^Class\s+(?P<name>[\w.%]+)"
    r"(?:\s+Extends\s+(?:\((?P<multi>[^)]*)\)|(?P<single>[\w.%]+)))?"
    r"(?:\s*\[(?P<keywords>[^\]]*)\])?",
    re.MULTILINE,
)

_PROPERTY = re.compile(
    r"^[ \t]*Property\s+(?P<name>%?\w+)(?:\s+As\s+(?P<type>[^;\[\n]+))?",
    re.MULTILINE,
)

_PARAMETER = re.compile(
    r"^[ \t]*Parameter\s+(?P<name>%?\w+)"
    r"(?:\s+As\s+(?P<type>[\w.%]+))?"
    r"(?:\s*=\s*(?P<value>\"[^\"]*\"|[^;\s]+))?",
    re.MULTILINE,
)

_METHOD = re.compile(
    r"^[ \t]*(?P<kind>ClassMethod|Method)\s+(?P<name>%?\w+)"
    # One level of nesting covers typed args such as %String(MAXLEN=50)
    r"\((?P<spec>(?:[^()]|\([^()]*\))*)\)"
    r"(?:\s+As\s+(?P<returns>[\w.%]+))?",
    re.MULTILINE,
)

_INDEX = re.compile(r"^[ \t]*Index\s+(?P<name>%?\w+)\s+On\s+\(?(?P<on>[\w, ]+)\)?", re.MULTILINE)


def _clean_property_type(raw_type: Optional[str]) -> str:
    """Normalise a property type clause.

    ``list Of Pkg.Item(...)`` -> ``list Of Pkg.Item``; trailing
    ``(PARAM = value)`` blocks are dropped.
    """
    if not raw_type or not raw_type.strip():
        return UNTYPED_PROPERTY

    full_type = raw_type.strip()
    lowered = full_type.lower()
    for collection in ("list", "array"):
        prefix = f"{collection} of "
        if lowered.startswith(prefix):
            element = full_type[len(prefix):].split("(")[0].strip()
            return f"{collection} Of {element}"

    return full_type.split("(")[0].strip() or UNTYPED_PROPERTY


def _parameter_type(type_clause: Optional[str], value: Optional[str]) -> str:
    if type_clause:
        return type_clause
    if value and value.isdigit():
        return "Integer"
    return DEFAULT_PARAMETER_TYPE


def _is_abstract(keywords: Optional[str]) -> bool:
    if not keywords:
        return False
    for kw in keywords.split(","):
        parts = [p.strip() for p in kw.split("=")]
        if parts[0].lower() == "abstract":
            return len(parts) == 1 or parts[1] not in ("0", "false")
    return False


def parse_class_header(source_text: str) -> Optional[str]:
    """Return the class name declared in the source, or None."""
    match = _CLASS_HEADER.search(source_text)
    return match.group("name") if match else None


def parse_class_source(source_text: str, file_path: str = "") -> Optional[ClassInfo]:
    """Extract a ClassInfo from ``.cls`` source text.

    Args:
        source_text: Full class definition text
        file_path: Used for log messages only

    Returns:
        ClassInfo, or None if no ``Class`` header is present
    """
    header = _CLASS_HEADER.search(source_text)
    if not header:
        logger.warning("No Class header found in %s", file_path or "<source>")
        return None

    class_name = header.group("name")
    superclasses = split_superclasses(header.group("multi") or header.group("single"))

    members: List[ClassMember] = []

    for m in _PROPERTY.finditer(source_text):
        members.append(
            ClassMember(
                name=m.group("name"),
                kind="property",
                type_signature=_clean_property_type(m.group("type")),
                origin_class=class_name,
            )
        )

    for m in _PARAMETER.finditer(source_text):
        members.append(
            ClassMember(
                name=m.group("name"),
                kind="parameter",
                type_signature=_parameter_type(m.group("type"), m.group("value")),
                origin_class=class_name,
            )
        )

    for m in _INDEX.finditer(source_text):
        members.append(
            ClassMember(
                name=m.group("name"),
                kind="index",
                type_signature=f"On {m.group('on').strip()}",
                origin_class=class_name,
            )
        )

    for m in _METHOD.finditer(source_text):
        members.append(
            ClassMember(
                name=m.group("name"),
                kind="method",
                type_signature=m.group("returns") or VOID_RETURN,
                formal_spec=m.group("spec").strip() or None,
                origin_class=class_name,
            )
        )

    return ClassInfo.create(
        class_name=class_name,
        direct_superclasses=superclasses,
        members=members,
        is_abstract=_is_abstract(header.group("keywords")),
    )
