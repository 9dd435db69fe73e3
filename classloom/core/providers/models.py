"""Class metadata data models.

Defines the core data structures shared by every provider backend.
These are pure data containers with no fetching or parsing logic.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# Member kinds rendered with a parameter list and return type
CALLABLE_KINDS = frozenset({"method", "classmethod", "query"})

# Class name -> direct superclass names, in discovery order
HierarchyGraph = Dict[str, List[str]]


@dataclass(frozen=True)
class ClassMember:
    """One declared feature of a class (property, method, parameter, index...)."""

    name: str  # "Save"
    kind: str  # "property" | "method" | "parameter" | "index" | "query" | ...
    type_signature: Optional[str] = None  # "%Status" / "%String" / None
    formal_spec: Optional[str] = None  # Raw "pId:%String,pForce:%Boolean=0"
    origin_class: Optional[str] = None  # Declaring class, for inherited members

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_KINDS


@dataclass(frozen=True)
class ClassInfo:
    """Resolved metadata for one class.

    Immutable once constructed. ``class_name`` is the fully-qualified,
    dot-separated name and acts as the unique key within a resolution session.
    """

    class_name: str
    direct_superclasses: Tuple[str, ...] = ()
    members: Tuple[ClassMember, ...] = ()
    is_abstract: bool = False

    @classmethod
    def create(
        cls,
        class_name: str,
        direct_superclasses: List[str] | Tuple[str, ...] = (),
        members: List[ClassMember] | Tuple[ClassMember, ...] = (),
        is_abstract: bool = False,
    ) -> "ClassInfo":
        """Build a ClassInfo from list inputs, freezing them into tuples."""
        return cls(
            class_name=class_name,
            direct_superclasses=tuple(s for s in direct_superclasses if s),
            members=tuple(members),
            is_abstract=bool(is_abstract),
        )

    @classmethod
    def placeholder(cls, class_name: str) -> "ClassInfo":
        """Stand-in for reserved-prefix or unresolvable classes."""
        return cls(class_name=class_name)

    @property
    def has_members(self) -> bool:
        return len(self.members) > 0


@dataclass(frozen=True)
class ResolvedHierarchy:
    """Output of one resolution session.

    ``ancestors`` is in depth-first preorder discovery order and never
    contains the root. ``hierarchy`` maps each expanded class that has at
    least one superclass to its direct superclasses.
    """

    root: ClassInfo
    ancestors: Tuple[ClassInfo, ...]
    hierarchy: HierarchyGraph
    fetch_count: int = 0
    truncated: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def class_names(self) -> List[str]:
        return [c.class_name for c in self.ancestors] + [self.root.class_name]
