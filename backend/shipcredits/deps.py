"""
Shared dependencies. Re-exports the request-context resolvers from platform.security.
"""

from .platform.security import get_request_context, require_admin, require_master_admin

__all__ = ["get_request_context", "require_admin", "require_master_admin"]
