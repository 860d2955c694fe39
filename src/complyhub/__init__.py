"""
ComplyHub - Compliance Automation Platform

This package provides:
- Server: FastAPI-based API for policies, evidence forms, integrations and cloud scans
- Client: async SDK including the cloud scan trigger/poll loop
- CLI: Command-line administration tools
"""

__version__ = "1.0.0"
__author__ = "ComplyHub"
