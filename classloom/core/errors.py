"""Exception taxonomy for class resolution, encoding and rendering.

Per-class provider errors are recoverable: the resolver logs them and
substitutes a placeholder class. Only rendering failures reach the caller.
"""

from typing import Optional


class ClassLoomError(Exception):
    """Base exception for all classloom errors."""

    pass


class ProviderError(ClassLoomError):
    """Raised when a backend cannot answer for a single class."""

    def __init__(self, message: str, class_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.class_name = class_name


class ProviderTransportError(ProviderError):
    """Raised on network or host-API failure while fetching a class."""

    pass


class CodecError(ClassLoomError):
    """Raised when diagram text cannot be compressed for URL encoding."""

    pass


class RenderInvocationError(RuntimeError, ClassLoomError):
    """Raised when the external PlantUML jar or server cannot produce a diagram.

    Attributes:
        stage: Pipeline stage that failed ("jar", "server", "write").
        class_name: Class the diagram was requested for, when known.
        stderr: Captured tool output, if any.
    """

    def __init__(
        self,
        message: str,
        stage: str = "render",
        class_name: Optional[str] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.class_name = class_name
        self.stderr = stderr

    def __str__(self) -> str:
        subject = f" for class {self.class_name}" if self.class_name else ""
        return f"[{self.stage}] diagram generation failed{subject}: {self.args[0]}"
