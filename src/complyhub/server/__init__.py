"""
ComplyHub Server - FastAPI-based API server.

This module provides the core server functionality:
- REST API endpoints for policies, evidence forms and integrations
- Background cloud-security scan runs
- Database models
"""


def __getattr__(name: str):
    """Lazy import to avoid loading heavy dependencies when only models are needed."""
    if name == "app":
        from complyhub.server.app import app
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["app"]
