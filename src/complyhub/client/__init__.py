"""Async HTTP client for the ComplyHub API."""

from complyhub.client.client import ComplyHubClient, PlatformScanOutcome

__all__ = ["ComplyHubClient", "PlatformScanOutcome"]
