"""
API route modules.

Uses lazy imports to avoid circular dependency issues when importing
individual route modules directly in tests.
"""

_module_cache = {}


def __getattr__(name: str):
    """Lazy import route modules to avoid circular imports."""
    if name in _module_cache:
        return _module_cache[name]

    valid_modules = {
        "cloud_security", "evidence_forms", "health", "integrations", "policies", "v1",
    }

    if name in valid_modules:
        import importlib
        module = importlib.import_module(f"complyhub.server.routes.{name}")
        _module_cache[name] = module
        return module

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "cloud_security",
    "evidence_forms",
    "health",
    "integrations",
    "policies",
    "v1",
]
