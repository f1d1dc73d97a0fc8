from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from app.helpdesk.entities import Client, Ticket, TicketFields, TicketPatch, TicketPriority, TicketStatus, User
from app.helpdesk.errors import NotFound, ValidationRejectedByStore
from app.helpdesk.rbac import TICKETS_CREATE, TICKETS_DELETE, TICKETS_EDIT, authorize
from app.helpdesk.repository import EntityRepository

TEXT_FIELDS = (
    "title",
    "description",
    "location",
    "found_defect",
    "executed_services",
    "technician_notes",
    "client_notes",
    "equipment_info",
    "technician_signature",
    "client_signature",
)
OPTIONAL_TEXT_FIELDS = frozenset(TEXT_FIELDS) - {"title", "description", "location"}
FLAG_FIELDS = ("under_warranty", "working", "service_completed", "verified_by_client")

SORT_ORDERS = {
    "date-desc": "Date (newest)",
    "date-asc": "Date (oldest)",
    "priority-desc": "Priority (highest)",
    "priority-asc": "Priority (lowest)",
    "status-asc": "Status (A-Z)",
}
DEFAULT_SORT = "date-desc"


def ticket_location_for(client: Client | None) -> str:
    """Default ticket location derived from the client: 'City, ST'."""
    if client is None:
        return ""
    return client.location


def parse_ticket_form(form: Mapping[str, Any]) -> TicketFields:
    """Turn submitted form values into a ticket payload (HTML checkboxes are absent when unchecked)."""
    payload: dict[str, Any] = {}
    for name in TEXT_FIELDS:
        value = (form.get(name) or "").strip()
        if name in OPTIONAL_TEXT_FIELDS:
            payload[name] = value or None
        else:
            payload[name] = value
    payload["client_id"] = (form.get("client_id") or "").strip()
    payload["technician_id"] = (form.get("technician_id") or "").strip() or None
    payload["status"] = (form.get("status") or TicketStatus.OPEN.value).strip()
    payload["priority"] = (form.get("priority") or TicketPriority.MEDIUM.value).strip()
    for name in FLAG_FIELDS:
        payload[name] = (form.get(name) or "").lower() in ("1", "on", "true", "yes")
    return payload  # type: ignore[return-value]


def validate_ticket_payload(payload: Mapping[str, Any], *, partial: bool = False) -> list[str]:
    """Required fields are only checked when present if partial (edits)."""
    errors = []
    for name, label in (("title", "Title"), ("description", "Description"), ("client_id", "Client")):
        if partial and name not in payload:
            continue
        if not (payload.get(name) or "").strip():
            errors.append(f"{label} is required.")
    status = getattr(payload.get("status"), "value", payload.get("status"))
    if status and status not in {s.value for s in TicketStatus}:
        errors.append(f"Invalid status: {status}")
    priority = getattr(payload.get("priority"), "value", payload.get("priority"))
    if priority and priority not in {p.value for p in TicketPriority}:
        errors.append(f"Invalid priority: {priority}")
    return errors


def _coerce_enums(payload: dict[str, Any]) -> None:
    if payload.get("status"):
        payload["status"] = TicketStatus(payload["status"])
    if payload.get("priority"):
        payload["priority"] = TicketPriority(payload["priority"])


def create_ticket(repo: EntityRepository, actor: User, payload: TicketFields) -> Ticket:
    authorize(actor.role, TICKETS_CREATE)
    errors = validate_ticket_payload(payload)
    if errors:
        raise ValidationRejectedByStore(" ".join(errors))

    fields: dict[str, Any] = dict(payload)
    _coerce_enums(fields)
    if not (fields.get("location") or "").strip():
        fields["location"] = ticket_location_for(repo.get_client(fields["client_id"]))
    return repo.create_ticket(fields, actor_id=actor.id)  # type: ignore[arg-type]


def update_ticket(repo: EntityRepository, actor: User, ticket_id: str, patch: TicketPatch) -> Ticket:
    authorize(actor.role, TICKETS_EDIT)
    errors = validate_ticket_payload(patch, partial=True)
    if errors:
        raise ValidationRejectedByStore(" ".join(errors))

    existing = repo.get_ticket(ticket_id)
    if existing is None:
        raise NotFound()

    fields: dict[str, Any] = dict(patch)
    _coerce_enums(fields)
    new_client_id = fields.get("client_id")
    if new_client_id and new_client_id != existing.client_id:
        submitted = (fields.get("location") or "").strip()
        # Re-derive unless the editor typed a location of their own.
        if not submitted or submitted == existing.location:
            fields["location"] = ticket_location_for(repo.get_client(new_client_id))
    return repo.update_ticket(ticket_id, fields, actor_id=actor.id)  # type: ignore[arg-type]


def delete_ticket(repo: EntityRepository, actor: User, ticket_id: str) -> bool:
    authorize(actor.role, TICKETS_DELETE)
    return repo.delete_ticket(ticket_id, actor_id=actor.id)


def filter_tickets(
    tickets: Iterable[Ticket],
    *,
    search: str = "",
    technician_id: str = "",
    location: str = "",
    status: str = "",
    priority: str = "",
) -> list[Ticket]:
    needle = (search or "").strip().lower()
    out = []
    for t in tickets:
        if needle and needle not in t.title.lower() and needle not in t.description.lower():
            continue
        if technician_id and t.technician_id != technician_id:
            continue
        if location and t.location != location:
            continue
        if status and t.status.value != status:
            continue
        if priority and t.priority.value != priority:
            continue
        out.append(t)
    return out


def _created(t: Ticket) -> tuple[bool, datetime]:
    return (t.created_at is not None, t.created_at or datetime.min)


def sort_tickets(tickets: Iterable[Ticket], order: str = DEFAULT_SORT) -> list[Ticket]:
    items = list(tickets)
    if order == "date-asc":
        return sorted(items, key=_created)
    if order == "priority-desc":
        return sorted(items, key=lambda t: t.priority.rank, reverse=True)
    if order == "priority-asc":
        return sorted(items, key=lambda t: t.priority.rank)
    if order == "status-asc":
        return sorted(items, key=lambda t: t.status.label)
    return sorted(items, key=_created, reverse=True)


def ticket_locations(tickets: Iterable[Ticket]) -> list[str]:
    return sorted({t.location for t in tickets if t.location})
