"""
Cloud security scanner registry.

A scanner inspects one connected cloud account and returns a list of
findings, one per check and resource. Scanners register themselves per
integration provider:

    @register_scanner("aws")
    class AwsScanner(CloudScanner):
        async def scan(self, credentials, variables): ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

from complyhub.exceptions import UnsupportedProviderError

Severity = Literal["info", "low", "medium", "high", "critical"]
FindingStatus = Literal["passed", "failed"]


@dataclass
class Finding:
    """Outcome of one check against one resource."""

    check_id: str
    title: str
    status: FindingStatus
    severity: Severity = "medium"
    description: Optional[str] = None
    resource_id: Optional[str] = None
    remediation: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class CloudScanner(ABC):
    """Base class for provider scanners."""

    provider: str = ""

    @abstractmethod
    async def scan(self, credentials: dict[str, Any], variables: dict[str, Any]) -> list[Finding]:
        """
        Run every check for the account.

        Raises:
            ScanError: when the account cannot be scanned at all
                (bad credentials, provider API unavailable).
        """


_SCANNERS: dict[str, type[CloudScanner]] = {}


def register_scanner(provider: str) -> Callable[[type[CloudScanner]], type[CloudScanner]]:
    def decorator(cls: type[CloudScanner]) -> type[CloudScanner]:
        cls.provider = provider
        _SCANNERS[provider] = cls
        return cls

    return decorator


def unregister_scanner(provider: str) -> None:
    _SCANNERS.pop(provider, None)


def get_scanner(provider: str) -> CloudScanner:
    """Instantiate the scanner for ``provider``."""
    try:
        return _SCANNERS[provider]()
    except KeyError:
        raise UnsupportedProviderError(provider) from None


def supported_providers() -> list[str]:
    return sorted(_SCANNERS)
