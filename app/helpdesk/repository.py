"""
Entity repository: the only code that reads or writes users, clients and tickets.

- Reads return entities (or None for a lookup miss); store failures propagate
  as StoreUnavailable.
- Every successful create/update/delete appends exactly one audit entry,
  attributed to the actor id passed in by the caller.
- No business rules live here: required-field and role checks are done by the
  module services before the repository is called. The required-field check
  below only mirrors the store's NOT NULL constraints so a missed pre-check
  fails the same way on both stores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from werkzeug.security import generate_password_hash

from app.helpdesk.audit import AuditRecorder
from app.helpdesk.entities import (
    AuditAction,
    AuditLogEntry,
    Client,
    ClientFields,
    ClientPatch,
    Entity,
    EntityKind,
    Ticket,
    TicketFields,
    TicketPatch,
    User,
    UserFields,
    UserPatch,
)
from app.helpdesk.errors import NotFound, ValidationRejectedByStore
from app.helpdesk.tables import TableStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _KindSpec:
    factory: Callable[[dict[str, Any]], Entity]
    required: tuple[str, ...]
    writable: frozenset[str]
    # Fields accepted on create only.
    create_only: frozenset[str] = frozenset()
    read_columns: tuple[str, ...] | None = None
    newest_first: bool = False


_SPECS: dict[EntityKind, _KindSpec] = {
    EntityKind.USER: _KindSpec(
        factory=User.from_row,
        required=("name", "email", "password", "role"),
        writable=frozenset(UserPatch.__annotations__),
        create_only=frozenset({"password"}),
        read_columns=("id", "name", "email", "role", "created_at"),
    ),
    EntityKind.CLIENT: _KindSpec(
        factory=Client.from_row,
        required=("name", "email", "contact_person", "phone", "city", "state"),
        writable=frozenset(ClientFields.__annotations__),
    ),
    EntityKind.TICKET: _KindSpec(
        factory=Ticket.from_row,
        required=("title", "description", "client_id"),
        writable=frozenset(TicketFields.__annotations__),
        newest_first=True,
    ),
}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class EntityRepository:
    def __init__(self, store: TableStore, recorder: AuditRecorder):
        self.store = store
        self.recorder = recorder

    # ---------- generic ----------

    def list(self, kind: EntityKind) -> list[Entity]:
        spec = _SPECS[kind]
        rows = self.store.select(
            kind.table,
            columns=spec.read_columns,
            order_by="created_at",
            descending=spec.newest_first,
        )
        return [spec.factory(r) for r in rows]

    def get_by_id(self, kind: EntityKind, entity_id: str) -> Entity | None:
        if not entity_id:
            return None
        spec = _SPECS[kind]
        rows = self.store.select(kind.table, columns=spec.read_columns, eq={"id": entity_id})
        return spec.factory(rows[0]) if rows else None

    def create(self, kind: EntityKind, fields: Mapping[str, Any], *, actor_id: str | None) -> Entity:
        spec = _SPECS[kind]
        self._check_fields(kind, fields, spec.writable | spec.create_only)
        missing = [name for name in spec.required if _is_blank(fields.get(name))]
        if missing:
            raise ValidationRejectedByStore(f"Missing required fields: {', '.join(missing)}.")

        row = self.store.insert(kind.table, self._to_row(kind, fields))
        entity = spec.factory(row)
        if kind is EntityKind.USER:
            entity = entity.without_secret()
        self._audit(AuditAction.CREATE, kind, entity, actor_id)
        return entity

    def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any], *, actor_id: str | None) -> Entity:
        spec = _SPECS[kind]
        self._check_fields(kind, patch, spec.writable)
        if not patch:
            entity = self.get_by_id(kind, entity_id)
            if entity is None:
                raise NotFound()
            return entity

        rows = self.store.update(kind.table, self._to_row(kind, patch), eq={"id": entity_id})
        if not rows:
            raise NotFound()
        entity = spec.factory(rows[0])
        if kind is EntityKind.USER:
            entity = entity.without_secret()
        self._audit(AuditAction.UPDATE, kind, entity, actor_id)
        return entity

    def delete(self, kind: EntityKind, entity_id: str, *, actor_id: str | None) -> bool:
        existing = self.get_by_id(kind, entity_id)
        if existing is None:
            return False
        rows = self.store.delete(kind.table, eq={"id": entity_id})
        if not rows:
            return False
        self._audit(AuditAction.DELETE, kind, existing, actor_id)
        return True

    def get_audited_entity(self, entry: AuditLogEntry) -> Entity | None:
        """Current state of the record an audit entry points at (None if gone)."""
        try:
            kind = EntityKind(entry.entity)
        except ValueError:
            logger.info("Audit entry %s references unknown entity %r", entry.id, entry.entity)
            return None
        if not entry.entity_id:
            return None
        return self.get_by_id(kind, entry.entity_id)

    # ---------- users ----------

    def get_user_by_email(self, email: str, *, include_password_hash: bool = False) -> User | None:
        spec = _SPECS[EntityKind.USER]
        columns = None if include_password_hash else spec.read_columns
        rows = self.store.select("users", columns=columns, eq={"email": normalize_email(email)})
        if not rows:
            return None
        user = User.from_row(rows[0])
        return user if include_password_hash else user.without_secret()

    def list_users(self) -> list[User]:
        return self.list(EntityKind.USER)  # type: ignore[return-value]

    def get_user(self, user_id: str) -> User | None:
        return self.get_by_id(EntityKind.USER, user_id)  # type: ignore[return-value]

    def create_user(self, fields: UserFields, *, actor_id: str | None) -> User:
        return self.create(EntityKind.USER, fields, actor_id=actor_id)  # type: ignore[return-value]

    def update_user(self, user_id: str, patch: UserPatch, *, actor_id: str | None) -> User:
        return self.update(EntityKind.USER, user_id, patch, actor_id=actor_id)  # type: ignore[return-value]

    def delete_user(self, user_id: str, *, actor_id: str | None) -> bool:
        return self.delete(EntityKind.USER, user_id, actor_id=actor_id)

    # ---------- clients ----------

    def list_clients(self) -> list[Client]:
        return self.list(EntityKind.CLIENT)  # type: ignore[return-value]

    def get_client(self, client_id: str) -> Client | None:
        return self.get_by_id(EntityKind.CLIENT, client_id)  # type: ignore[return-value]

    def create_client(self, fields: ClientFields, *, actor_id: str | None) -> Client:
        return self.create(EntityKind.CLIENT, fields, actor_id=actor_id)  # type: ignore[return-value]

    def update_client(self, client_id: str, patch: ClientPatch, *, actor_id: str | None) -> Client:
        return self.update(EntityKind.CLIENT, client_id, patch, actor_id=actor_id)  # type: ignore[return-value]

    def delete_client(self, client_id: str, *, actor_id: str | None) -> bool:
        return self.delete(EntityKind.CLIENT, client_id, actor_id=actor_id)

    # ---------- tickets ----------

    def list_tickets(self) -> list[Ticket]:
        return self.list(EntityKind.TICKET)  # type: ignore[return-value]

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        return self.get_by_id(EntityKind.TICKET, ticket_id)  # type: ignore[return-value]

    def create_ticket(self, fields: TicketFields, *, actor_id: str | None) -> Ticket:
        return self.create(EntityKind.TICKET, fields, actor_id=actor_id)  # type: ignore[return-value]

    def update_ticket(self, ticket_id: str, patch: TicketPatch, *, actor_id: str | None) -> Ticket:
        return self.update(EntityKind.TICKET, ticket_id, patch, actor_id=actor_id)  # type: ignore[return-value]

    def delete_ticket(self, ticket_id: str, *, actor_id: str | None) -> bool:
        return self.delete(EntityKind.TICKET, ticket_id, actor_id=actor_id)

    # ---------- audit ----------

    def list_audit_logs(self) -> list[AuditLogEntry]:
        return self.recorder.list_entries()

    def get_audit_log(self, entry_id: str) -> AuditLogEntry | None:
        return self.recorder.get_entry(entry_id)

    # ---------- internals ----------

    @staticmethod
    def _check_fields(kind: EntityKind, values: Mapping[str, Any], allowed: frozenset[str]) -> None:
        unknown = sorted(set(values) - allowed)
        if unknown:
            raise ValueError(f"{kind.value} does not accept field(s): {', '.join(unknown)}")

    @staticmethod
    def _to_row(kind: EntityKind, values: Mapping[str, Any]) -> dict[str, Any]:
        row = dict(values)
        if kind is EntityKind.USER:
            if "email" in row:
                row["email"] = normalize_email(row["email"])
            if "password" in row:
                row["password_hash"] = generate_password_hash(row.pop("password"))
        return row

    def _audit(self, action: AuditAction, kind: EntityKind, entity: Entity, actor_id: str | None) -> None:
        details = f"{kind.value} '{entity.display_name}' {action.past_tense}."
        self.recorder.record(action, kind, entity.id or None, details, actor_id=actor_id)
