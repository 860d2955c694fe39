"""
CLI command modules.

This module provides all CLI commands for ComplyHub, organized into logical groups.
"""

# Database commands
from complyhub.cli.commands.db import db

# Evidence form catalog commands
from complyhub.cli.commands.forms import forms

# Policy commands
from complyhub.cli.commands.policies import policies

# Cloud security scan commands
from complyhub.cli.commands.scan import scan

# Server command
from complyhub.cli.commands.server import serve

__all__ = [
    "serve",
    "db",
    "forms",
    "policies",
    "scan",
]
