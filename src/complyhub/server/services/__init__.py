"""
Business logic services for the ComplyHub server.

Each service is constructed per request with the database session and the
caller's ``OrgContext``; every query it runs is scoped to that organization.
"""

from complyhub.server.services.base import BaseService, OrgContext

__all__ = ["BaseService", "OrgContext"]
