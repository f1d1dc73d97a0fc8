from __future__ import annotations

import logging

from app.helpdesk.entities import AuditAction, AuditLogEntry, EntityKind
from app.helpdesk.errors import HelpdeskError
from app.helpdesk.tables import TableStore

logger = logging.getLogger(__name__)

AUDIT_TABLE = "audit_logs"


class AuditRecorder:
    """
    Append-only audit trail helper.

    Recording is best effort: the entity write has already been committed when
    record() runs, so a failed append is logged and never raised to the caller.
    """

    def __init__(self, store: TableStore):
        self.store = store

    def record(
        self,
        action: AuditAction,
        entity: EntityKind | str,
        entity_id: str | None,
        details: str,
        *,
        actor_id: str | None,
    ) -> AuditLogEntry | None:
        entity_name = entity.value if isinstance(entity, EntityKind) else entity
        if not actor_id:
            logger.warning(
                "Audit entry skipped, no authenticated actor (action=%s entity=%s entity_id=%s)",
                action.value,
                entity_name,
                entity_id,
            )
            return None
        try:
            row = self.store.insert(
                AUDIT_TABLE,
                {
                    "user_id": actor_id,
                    "action": action.value,
                    "entity": entity_name,
                    "entity_id": entity_id,
                    "details": details,
                },
            )
        except HelpdeskError as e:
            logger.error(
                "Audit append failed (action=%s entity=%s entity_id=%s actor=%s): %s",
                action.value,
                entity_name,
                entity_id,
                actor_id,
                e.__cause__ or e,
            )
            return None
        return AuditLogEntry.from_row(row)

    def list_entries(self) -> list[AuditLogEntry]:
        """Newest first."""
        rows = self.store.select(AUDIT_TABLE, order_by="created_at", descending=True)
        return [AuditLogEntry.from_row(r) for r in rows]

    def get_entry(self, entry_id: str) -> AuditLogEntry | None:
        if not entry_id:
            return None
        rows = self.store.select(AUDIT_TABLE, eq={"id": entry_id})
        return AuditLogEntry.from_row(rows[0]) if rows else None
