"""ComplyHub server middleware."""

from complyhub.server.middleware.rate_limit import limiter
from complyhub.server.middleware.stack import register_middleware

__all__ = ["limiter", "register_middleware"]
