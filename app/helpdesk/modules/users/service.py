"""
User administration on behalf of an acting user.

An actor may only create, edit or delete users whose role it could assign,
and may only hand out roles from get_available_roles(actor.role).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from app.helpdesk.entities import Role, User, UserFields, UserPatch
from app.helpdesk.errors import NotFound, ValidationRejectedByStore
from app.helpdesk.rbac import USERS_MANAGE, authorize

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def parse_user_form(form: Mapping[str, Any], *, creating: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": (form.get("name") or "").strip(),
        "email": (form.get("email") or "").strip(),
        "role": (form.get("role") or "").strip(),
    }
    if creating:
        payload["password"] = form.get("password") or ""
    return payload


def validate_user_payload(payload: Mapping[str, Any], *, creating: bool) -> list[str]:
    errors = []
    if not payload.get("name"):
        errors.append("Name is required.")
    email = payload.get("email") or ""
    if not email:
        errors.append("Email is required.")
    elif not _EMAIL_RE.match(email):
        errors.append("Email is not valid.")
    role = getattr(payload.get("role"), "value", payload.get("role"))
    if role not in {r.value for r in Role}:
        errors.append("Role is required.")
    if creating and len(payload.get("password") or "") < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return errors


def create_user(repo, actor: User, payload: UserFields) -> User:
    authorize(actor.role, USERS_MANAGE)
    errors = validate_user_payload(payload, creating=True)
    if errors:
        raise ValidationRejectedByStore(" ".join(errors))
    role = Role(payload["role"])
    authorize(actor.role, USERS_MANAGE, target_role=role)
    return repo.create_user({**payload, "role": role}, actor_id=actor.id)


def update_user(repo, actor: User, user_id: str, patch: UserPatch) -> User:
    authorize(actor.role, USERS_MANAGE)
    errors = validate_user_payload(patch, creating=False)
    if errors:
        raise ValidationRejectedByStore(" ".join(errors))
    existing = repo.get_user(user_id)
    if existing is None:
        raise NotFound()
    new_role = Role(patch["role"])
    authorize(actor.role, USERS_MANAGE, target_role=existing.role)
    authorize(actor.role, USERS_MANAGE, target_role=new_role)
    return repo.update_user(user_id, {**patch, "role": new_role}, actor_id=actor.id)


def delete_user(repo, actor: User, user_id: str) -> bool:
    authorize(actor.role, USERS_MANAGE)
    existing = repo.get_user(user_id)
    if existing is None:
        return False
    authorize(actor.role, USERS_MANAGE, target_role=existing.role)
    return repo.delete_user(user_id, actor_id=actor.id)
