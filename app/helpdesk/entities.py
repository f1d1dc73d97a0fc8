"""
Domain entities and the row <-> entity mapping used by the repository.

Column names in the backing store are identical to the attribute names here,
so mapping is mostly a matter of parsing timestamps and enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, TypedDict


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER_ADMIN = "manager_admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"

    @property
    def label(self) -> str:
        return _ROLE_LABELS[self]


_ROLE_LABELS = {
    Role.ADMIN: "Administrator",
    Role.MANAGER_ADMIN: "Manager (admin)",
    Role.MANAGER: "Manager",
    Role.TECHNICIAN: "Technician",
}


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    PENDING = "pending"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TicketPriority.LOW: 1,
    TicketPriority.MEDIUM: 2,
    TicketPriority.HIGH: 3,
    TicketPriority.URGENT: 4,
}


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def past_tense(self) -> str:
        return f"{self.value}d"


class EntityKind(str, Enum):
    USER = "User"
    CLIENT = "Client"
    TICKET = "Ticket"

    @property
    def table(self) -> str:
        return _KIND_TABLES[self]


_KIND_TABLES = {
    EntityKind.USER: "users",
    EntityKind.CLIENT: "clients",
    EntityKind.TICKET: "tickets",
}


def parse_timestamp(value: Any) -> datetime | None:
    """Accept datetimes (sql store) and ISO-8601 strings (REST store / session JSON)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


@dataclass
class User:
    id: str
    name: str
    email: str
    role: Role
    created_at: datetime | None = None
    # Only populated by the login lookup; never by list/get projections.
    password_hash: str | None = field(default=None, repr=False, compare=False)

    @property
    def display_name(self) -> str:
        return self.name

    def without_secret(self) -> "User":
        return User(id=self.id, name=self.name, email=self.email, role=self.role, created_at=self.created_at)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            email=row.get("email") or "",
            role=Role(row["role"]),
            created_at=parse_timestamp(row.get("created_at")),
            password_hash=row.get("password_hash"),
        )


@dataclass
class Client:
    id: str
    name: str
    contact_person: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    agency_number: str | None = None
    agency_name: str | None = None
    created_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def location(self) -> str:
        return f"{self.city}, {self.state}"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Client":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            contact_person=row.get("contact_person") or "",
            email=row.get("email") or "",
            phone=row.get("phone") or "",
            address=row.get("address") or "",
            city=row.get("city") or "",
            state=row.get("state") or "",
            agency_number=row.get("agency_number"),
            agency_name=row.get("agency_name"),
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class Ticket:
    id: str
    code: str
    title: str
    description: str
    client_id: str
    technician_id: str | None
    status: TicketStatus
    priority: TicketPriority
    location: str
    found_defect: str | None = None
    executed_services: str | None = None
    technician_notes: str | None = None
    client_notes: str | None = None
    equipment_info: str | None = None
    under_warranty: bool = False
    working: bool = False
    service_completed: bool = False
    verified_by_client: bool = False
    technician_signature: str | None = None
    client_signature: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.title

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Ticket":
        technician_id = row.get("technician_id")
        return cls(
            id=str(row["id"]),
            code=row.get("code") or "",
            title=row.get("title") or "",
            description=row.get("description") or "",
            client_id=str(row["client_id"]),
            technician_id=str(technician_id) if technician_id else None,
            status=TicketStatus(row.get("status") or TicketStatus.OPEN.value),
            priority=TicketPriority(row.get("priority") or TicketPriority.MEDIUM.value),
            location=row.get("location") or "",
            found_defect=row.get("found_defect"),
            executed_services=row.get("executed_services"),
            technician_notes=row.get("technician_notes"),
            client_notes=row.get("client_notes"),
            equipment_info=row.get("equipment_info"),
            under_warranty=bool(row.get("under_warranty")),
            working=bool(row.get("working")),
            service_completed=bool(row.get("service_completed")),
            verified_by_client=bool(row.get("verified_by_client")),
            technician_signature=row.get("technician_signature"),
            client_signature=row.get("client_signature"),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only; never updated or deleted by the application."""

    id: str
    user_id: str | None
    action: AuditAction
    entity: str
    entity_id: str | None
    details: str
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AuditLogEntry":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]) if row.get("user_id") else None,
            action=AuditAction(row["action"]),
            entity=row.get("entity") or "",
            entity_id=str(row["entity_id"]) if row.get("entity_id") else None,
            details=row.get("details") or "",
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class PrintHeaderSettings:
    company_name: str = ""
    cnpj: str = ""
    phone: str = ""
    address: str = ""
    logo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrintHeaderSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# ---------- Write payloads ----------
# Creation payloads list every field a caller may send; patches are the same
# shape with every key optional. Keys absent from a patch are left untouched.


class UserFields(TypedDict, total=False):
    name: str
    email: str
    password: str
    role: Role


class UserPatch(TypedDict, total=False):
    name: str
    email: str
    role: Role


class ClientFields(TypedDict, total=False):
    name: str
    contact_person: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    agency_number: str | None
    agency_name: str | None


ClientPatch = ClientFields


class TicketFields(TypedDict, total=False):
    title: str
    description: str
    client_id: str
    technician_id: str | None
    status: TicketStatus
    priority: TicketPriority
    location: str
    found_defect: str | None
    executed_services: str | None
    technician_notes: str | None
    client_notes: str | None
    equipment_info: str | None
    under_warranty: bool
    working: bool
    service_completed: bool
    verified_by_client: bool
    technician_signature: str | None
    client_signature: str | None


TicketPatch = TicketFields


Entity = User | Client | Ticket
