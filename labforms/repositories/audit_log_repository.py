from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.database.models import AuditLog
from labforms.repositories.base_repository import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Append-only access to the audit log."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLog)

    async def append(
        self,
        actor_id: str,
        action: str,
        entity: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        return await self.create(
            actor_id=actor_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            metadata_json=metadata or {},
        )

    async def list_for_entity(self, entity: str, entity_id: str) -> List[AuditLog]:
        query = (
            select(AuditLog)
            .where(AuditLog.entity == entity, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
