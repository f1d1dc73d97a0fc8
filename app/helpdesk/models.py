"""
Relational schema of the backing store.

The Supabase/Postgres deployment is created from these tables by the alembic
migration; the sql table store (local development, tests) uses them directly.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

TICKET_CODE_PREFIX = "OS-"
TICKET_CODE_DIGITS = 6


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC, matching the timezone-less timestamp columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_ticket_code(number: int) -> str:
    return f"{TICKET_CODE_PREFIX}{number:0{TICKET_CODE_DIGITS}d}"


def _next_ticket_code(context) -> str:
    # Zero-padded codes sort lexicographically, so max() is the latest one.
    table = Ticket.__table__
    last = context.connection.execute(select(func.max(table.c.code))).scalar()
    if not last:
        return format_ticket_code(1)
    return format_ticket_code(int(last[len(TICKET_CODE_PREFIX):]) + 1)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_person: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    agency_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    agency_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, default=_next_ticket_code)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)
    technician_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")
    priority: Mapped[str] = mapped_column(String(32), nullable=False, default="medium")
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    found_defect: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_services: Mapped[str | None] = mapped_column(Text, nullable=True)
    technician_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    equipment_info: Mapped[str | None] = mapped_column(Text, nullable=True)

    under_warranty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    working: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    service_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by_client: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    technician_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_signature: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class AuditLog(Base):
    """
    Append-only audit trail.
    user_id and entity_id carry no foreign keys so entries survive deletion of the
    records they point at.
    """

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    entity: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
