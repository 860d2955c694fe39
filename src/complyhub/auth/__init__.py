"""
Request identity for the ComplyHub API.
"""

from complyhub.auth.dependencies import (
    CurrentMember,
    get_current_member,
    require_admin,
    require_role,
)

__all__ = ["CurrentMember", "get_current_member", "require_admin", "require_role"]
