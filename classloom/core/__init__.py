# Lazy imports keep `from classloom.core.errors import ...` from pulling in
# httpx, yaml and the provider stack.

__all__ = [
    # Data model
    "ClassInfo",
    "ClassMember",
    "ResolvedHierarchy",
    # Providers
    "ClassInfoProvider",
    "SourceTextProvider",
    "RemoteSqlProvider",
    "HostApiProvider",
    "ServerConfig",
    "build_provider",
    # Resolution and rendering
    "HierarchyResolver",
    "DiagramService",
    "render_class_diagram",
    "encode_diagram",
    # Config
    "load_unified_config",
]

_IMPORT_MAP = {
    "ClassInfo": ".providers",
    "ClassMember": ".providers",
    "ResolvedHierarchy": ".providers",
    "ClassInfoProvider": ".providers",
    "SourceTextProvider": ".providers",
    "RemoteSqlProvider": ".providers",
    "HostApiProvider": ".providers",
    "ServerConfig": ".providers",
    "build_provider": ".providers",
    "HierarchyResolver": ".hierarchy",
    "DiagramService": ".diagrams",
    "render_class_diagram": ".diagrams",
    "encode_diagram": ".diagrams",
    "load_unified_config": ".config",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'classloom.core' has no attribute {name}")
