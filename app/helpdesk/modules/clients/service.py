from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from app.helpdesk.entities import Client, ClientFields, ClientPatch, User
from app.helpdesk.errors import ValidationRejectedByStore
from app.helpdesk.rbac import CLIENTS_DELETE, CLIENTS_MANAGE, authorize

REQUIRED_FIELDS = (
    ("name", "Name"),
    ("contact_person", "Contact person"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("city", "City"),
    ("state", "State"),
)
OPTIONAL_FIELDS = ("agency_number", "agency_name")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def parse_client_form(form: Mapping[str, Any]) -> ClientFields:
    payload: dict[str, Any] = {}
    for name, _label in REQUIRED_FIELDS:
        payload[name] = (form.get(name) or "").strip()
    for name in OPTIONAL_FIELDS:
        payload[name] = (form.get(name) or "").strip() or None
    payload["address"] = (form.get("address") or "").strip()
    payload["state"] = payload["state"].upper()
    return payload  # type: ignore[return-value]


def validate_client_payload(payload: Mapping[str, Any], *, partial: bool = False) -> list[str]:
    errors = []
    for name, label in REQUIRED_FIELDS:
        if partial and name not in payload:
            continue
        if not (payload.get(name) or "").strip():
            errors.append(f"{label} is required.")
    email = (payload.get("email") or "").strip()
    if email and not _EMAIL_RE.match(email):
        errors.append("Email is not valid.")
    state = (payload.get("state") or "").strip()
    if state and not re.fullmatch(r"[A-Za-z]{2}", state):
        errors.append("State must be a 2-letter code.")
    return errors


def _normalized(payload: Mapping[str, Any]) -> dict[str, Any]:
    fields = dict(payload)
    if fields.get("state"):
        fields["state"] = fields["state"].strip().upper()
    return fields


def create_client(repo, actor: User, payload: ClientFields) -> Client:
    authorize(actor.role, CLIENTS_MANAGE)
    errors = validate_client_payload(payload)
    if errors:
        raise ValidationRejectedByStore(" ".join(errors))
    return repo.create_client(_normalized(payload), actor_id=actor.id)


def update_client(repo, actor: User, client_id: str, patch: ClientPatch) -> Client:
    authorize(actor.role, CLIENTS_MANAGE)
    errors = validate_client_payload(patch, partial=True)
    if errors:
        raise ValidationRejectedByStore(" ".join(errors))
    return repo.update_client(client_id, _normalized(patch), actor_id=actor.id)


def delete_client(repo, actor: User, client_id: str) -> bool:
    """A client still referenced by tickets is refused by the store (ValidationRejectedByStore)."""
    authorize(actor.role, CLIENTS_DELETE)
    return repo.delete_client(client_id, actor_id=actor.id)
