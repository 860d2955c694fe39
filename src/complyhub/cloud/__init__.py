"""
Cloud security scanning.

Importing this package registers the built-in scanners.
"""

from complyhub.cloud import aws  # noqa: F401
from complyhub.cloud.scanners import (
    CloudScanner,
    Finding,
    get_scanner,
    register_scanner,
    supported_providers,
    unregister_scanner,
)

__all__ = [
    "CloudScanner",
    "Finding",
    "get_scanner",
    "register_scanner",
    "supported_providers",
    "unregister_scanner",
]
