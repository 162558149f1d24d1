"""
Audit Recorder
==============

Appends one immutable ``AuditEntryModel`` per logical action, in its own
short transaction *after* the primary transaction has committed.

Best effort: a failed audit write is logged and swallowed, it never undoes
or blocks the committed change.  Every written entry is also mirrored to the
dedicated ``audit`` logger so it can be routed to a separate sink.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.domain.enums import AuditAction, EntityType
from fleetflow.infrastructure.models import AuditEntryModel
from fleetflow.infrastructure.repositories import AuditRepository

logger = logging.getLogger(__name__)
_audit_logger = logging.getLogger("audit")


class AuditRecorder:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: int,
        actor_id: int,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEntryModel]:
        """Append an entry; returns ``None`` if the write failed."""
        entry = AuditEntryModel(
            action=action.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
            actor_id=actor_id,
            details=details or {},
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with self._session_factory() as session:
                await AuditRepository(session).append(entry)
                await session.commit()
        except Exception:
            logger.exception(
                "Audit write failed: %s on %s %s by user %s",
                action.value,
                entity_type.value,
                entity_id,
                actor_id,
            )
            return None

        _audit_logger.info(
            "AUDIT: %s %s=%s actor=%s %s",
            action.value,
            entity_type.value,
            entity_id,
            actor_id,
            entry.details,
            extra={
                "audit_action": action.value,
                "entity_type": entity_type.value,
                "entity_id": entity_id,
                "actor_id": actor_id,
            },
        )
        return entry

    async def list_entries(
        self,
        *,
        entity_type: Optional[EntityType] = None,
        entity_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AuditEntryModel], int]:
        async with self._session_factory() as session:
            return await AuditRepository(session).list(
                entity_type=entity_type.value if entity_type else None,
                entity_id=entity_id,
                offset=offset,
                limit=limit,
            )
