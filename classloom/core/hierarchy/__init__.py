from .resolver import HierarchyResolver

__all__ = ["HierarchyResolver"]
