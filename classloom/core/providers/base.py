"""Base interface for class metadata providers.

Defines the Strategy pattern base class that all backends implement.
Shared behaviour lives here (reserved-prefix short-circuit, superclass
list parsing); backend-specific fetching is delegated to ``_fetch``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple

from .models import ClassInfo

logger = logging.getLogger(__name__)

# System classes (%Library.*, %Persistent, ...) are skipped: their dictionary
# entries are noisy and not useful in an application class diagram.
DEFAULT_RESERVED_PREFIXES: Tuple[str, ...] = ("%",)


def is_reserved(class_name: str, prefixes: Iterable[str] = DEFAULT_RESERVED_PREFIXES) -> bool:
    """Return True if the class name starts with a reserved (system) prefix."""
    return any(class_name.startswith(p) for p in prefixes)


def split_superclasses(raw: Optional[str]) -> List[str]:
    """Split a comma-separated ``Super`` value into trimmed class names."""
    if not raw:
        return []
    return [s.strip() for s in str(raw).split(",") if s.strip()]


def is_truthy_flag(value: Any) -> bool:
    """Interpret dictionary boolean columns (1, "1", True)."""
    return value is True or value == 1 or value == "1"


class ClassInfoProvider(ABC):
    """Abstract base for single-class metadata backends.

    Subclasses implement:
    - _fetch(): look up one class, returning None when it does not exist

    Contract of fetch():
    - reserved-prefix names return a placeholder without any backend call
    - missing classes return None (never raise)
    - transport/host failures raise ProviderTransportError
    """

    name: str = "base"

    def __init__(self, reserved_prefixes: Iterable[str] = DEFAULT_RESERVED_PREFIXES):
        self._reserved_prefixes = tuple(reserved_prefixes)

    async def fetch(self, class_name: str) -> Optional[ClassInfo]:
        """Fetch metadata for a single class.

        Args:
            class_name: Fully-qualified class name (e.g., "App.Model.Order")

        Returns:
            ClassInfo, or None if the backend has no such class

        Raises:
            ProviderTransportError: If the backend could not be reached
        """
        if is_reserved(class_name, self._reserved_prefixes):
            logger.debug("Skipping reserved class %s", class_name)
            return ClassInfo.placeholder(class_name)

        return await self._fetch(class_name)

    @abstractmethod
    async def _fetch(self, class_name: str) -> Optional[ClassInfo]:
        """Backend-specific lookup of a non-reserved class."""
        ...

    async def aclose(self) -> None:
        """Release backend resources. Default is a no-op."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
