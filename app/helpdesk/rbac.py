"""
Role-based authorization matrix.

The policy is a closed table keyed by role: which pages a role sees, which
permission keys it holds and which roles it may assign when managing users.
Everything in the first half of this module is pure and Flask-free; the
decorators at the bottom adapt it to request handlers.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.helpdesk.entities import Role, User
from app.helpdesk.errors import AuthorizationDenied


class Page(str, Enum):
    DASHBOARD = "dashboard"
    TICKETS = "tickets"
    REPORTS = "reports"
    CLIENTS = "clients"
    USERS = "users"
    AUDIT = "audit"
    SETTINGS = "settings"


# Technician < Manager < ManagerAdmin < Admin
ROLE_RANK: dict[Role, int] = {
    Role.TECHNICIAN: 0,
    Role.MANAGER: 1,
    Role.MANAGER_ADMIN: 2,
    Role.ADMIN: 3,
}

ROLE_PAGES: dict[Role, tuple[Page, ...]] = {
    Role.ADMIN: tuple(Page),
    Role.MANAGER_ADMIN: (Page.DASHBOARD, Page.TICKETS, Page.REPORTS, Page.CLIENTS, Page.USERS),
    Role.MANAGER: (Page.DASHBOARD, Page.TICKETS, Page.REPORTS, Page.CLIENTS),
    Role.TECHNICIAN: (Page.DASHBOARD, Page.TICKETS, Page.REPORTS),
}

TICKETS_CREATE = "tickets.create"
TICKETS_EDIT = "tickets.edit"
TICKETS_DELETE = "tickets.delete"
CLIENTS_MANAGE = "clients.manage"
CLIENTS_DELETE = "clients.delete"
USERS_MANAGE = "users.manage"
AUDIT_VIEW = "audit.view"
SETTINGS_MANAGE = "settings.manage"

_TICKET_WORK = frozenset({TICKETS_CREATE, TICKETS_EDIT})
_OFFICE = _TICKET_WORK | {TICKETS_DELETE, CLIENTS_MANAGE, CLIENTS_DELETE}

ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.ADMIN: _OFFICE | {USERS_MANAGE, AUDIT_VIEW, SETTINGS_MANAGE},
    Role.MANAGER_ADMIN: _OFFICE | {USERS_MANAGE},
    Role.MANAGER: _OFFICE,
    Role.TECHNICIAN: _TICKET_WORK,
}

ASSIGNABLE_ROLES: dict[Role, tuple[Role, ...]] = {
    Role.ADMIN: (Role.ADMIN, Role.MANAGER_ADMIN, Role.MANAGER, Role.TECHNICIAN),
    Role.MANAGER_ADMIN: (Role.MANAGER_ADMIN, Role.MANAGER, Role.TECHNICIAN),
    Role.MANAGER: (),
    Role.TECHNICIAN: (),
}


def role_rank(role: Role) -> int:
    return ROLE_RANK[Role(role)]


def visible_pages(role: Role) -> tuple[Page, ...]:
    return ROLE_PAGES[Role(role)]


def can_view_page(role: Role, page: Page | str) -> bool:
    return Page(page) in visible_pages(role)


def role_has_permission(role: Role, permission_key: str) -> bool:
    return permission_key in ROLE_PERMISSIONS[Role(role)]


def get_available_roles(role: Role) -> tuple[Role, ...]:
    """Roles the acting role may give to a user it creates or edits."""
    return ASSIGNABLE_ROLES[Role(role)]


def can_manage_user(acting_role: Role, target_role: Role) -> bool:
    if not role_has_permission(acting_role, USERS_MANAGE):
        return False
    return Role(target_role) in get_available_roles(acting_role)


def is_allowed(role: Role, permission_key: str, *, target_role: Role | None = None) -> bool:
    if not role_has_permission(role, permission_key):
        return False
    if permission_key == USERS_MANAGE and target_role is not None:
        return can_manage_user(role, target_role)
    return True


def authorize(role: Role, permission_key: str, *, target_role: Role | None = None) -> None:
    """Raise AuthorizationDenied unless the role may perform the action."""
    if is_allowed(role, permission_key, target_role=target_role):
        return
    if permission_key == USERS_MANAGE and target_role is not None and role_has_permission(role, USERS_MANAGE):
        raise AuthorizationDenied(f"Your role cannot manage users with the role '{Role(target_role).label}'.")
    raise AuthorizationDenied()


def authorize_page(role: Role, page: Page | str) -> None:
    if not can_view_page(role, page):
        raise AuthorizationDenied("You do not have access to this page.")


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user:
        return False
    return role_has_permission(user.role, permission_key)


# ---------- Flask adapters ----------


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def _guard(check: Callable[[User], None]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user:
                return _login_redirect()
            try:
                check(user)
            except AuthorizationDenied as e:
                g.denied_message = e.message
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return _guard(lambda user: authorize(user.role, permission_key))


def require_page(page: Page) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return _guard(lambda user: authorize_page(user.role, page))
