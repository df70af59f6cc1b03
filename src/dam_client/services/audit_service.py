"""
Audit log service for the DAM API.
The log is append-only on the server, so cached pages only expire by TTL.
"""

from typing import Optional

from dam_client.schemas import AuditFilters, AuditLog, Page
from dam_client.services.base import BaseService

AUDIT_CACHE_PREFIX = ("audit",)


class AuditService(BaseService):
    """Service for reading the audit log"""

    def list_audit_logs(self, filters: Optional[AuditFilters] = None) -> Page[AuditLog]:
        """Get one page of audit entries."""
        filters = filters or AuditFilters()
        return self.cache.get_or_fetch(
            AUDIT_CACHE_PREFIX + (filters.cache_key(),),
            lambda: Page[AuditLog].model_validate(self.api.get("/api/audit/", params=filters.to_params())),
        )
