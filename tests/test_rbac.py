import pytest

from app.helpdesk.entities import Role
from app.helpdesk.errors import AuthorizationDenied
from app.helpdesk.rbac import (
    AUDIT_VIEW,
    CLIENTS_DELETE,
    CLIENTS_MANAGE,
    SETTINGS_MANAGE,
    TICKETS_CREATE,
    TICKETS_DELETE,
    TICKETS_EDIT,
    USERS_MANAGE,
    Page,
    authorize,
    can_manage_user,
    can_view_page,
    get_available_roles,
    is_allowed,
    role_has_permission,
    role_rank,
    visible_pages,
)


@pytest.mark.parametrize(
    "role,pages",
    [
        (Role.ADMIN, {"dashboard", "tickets", "reports", "clients", "users", "audit", "settings"}),
        (Role.MANAGER_ADMIN, {"dashboard", "tickets", "reports", "clients", "users"}),
        (Role.MANAGER, {"dashboard", "tickets", "reports", "clients"}),
        (Role.TECHNICIAN, {"dashboard", "tickets", "reports"}),
    ],
)
def test_visible_pages(role, pages):
    assert {p.value for p in visible_pages(role)} == pages
    for page in Page:
        assert can_view_page(role, page) is (page.value in pages)


@pytest.mark.parametrize(
    "role,allowed",
    [
        (Role.ADMIN, {TICKETS_CREATE, TICKETS_EDIT, TICKETS_DELETE, CLIENTS_MANAGE, CLIENTS_DELETE, USERS_MANAGE, AUDIT_VIEW, SETTINGS_MANAGE}),
        (Role.MANAGER_ADMIN, {TICKETS_CREATE, TICKETS_EDIT, TICKETS_DELETE, CLIENTS_MANAGE, CLIENTS_DELETE, USERS_MANAGE}),
        (Role.MANAGER, {TICKETS_CREATE, TICKETS_EDIT, TICKETS_DELETE, CLIENTS_MANAGE, CLIENTS_DELETE}),
        (Role.TECHNICIAN, {TICKETS_CREATE, TICKETS_EDIT}),
    ],
)
def test_permission_matrix(role, allowed):
    every = {TICKETS_CREATE, TICKETS_EDIT, TICKETS_DELETE, CLIENTS_MANAGE, CLIENTS_DELETE, USERS_MANAGE, AUDIT_VIEW, SETTINGS_MANAGE}
    for key in every:
        assert role_has_permission(role, key) is (key in allowed), key


def test_available_roles():
    assert get_available_roles(Role.ADMIN) == (Role.ADMIN, Role.MANAGER_ADMIN, Role.MANAGER, Role.TECHNICIAN)
    assert get_available_roles(Role.MANAGER_ADMIN) == (Role.MANAGER_ADMIN, Role.MANAGER, Role.TECHNICIAN)
    assert get_available_roles(Role.MANAGER) == ()
    assert get_available_roles(Role.TECHNICIAN) == ()


def test_no_role_assigns_above_its_own_rank():
    for role in Role:
        for assignable in get_available_roles(role):
            assert role_rank(assignable) <= role_rank(role)


def test_manager_admin_cannot_manage_admins():
    assert can_manage_user(Role.MANAGER_ADMIN, Role.MANAGER)
    assert not can_manage_user(Role.MANAGER_ADMIN, Role.ADMIN)
    assert not is_allowed(Role.MANAGER_ADMIN, USERS_MANAGE, target_role=Role.ADMIN)
    with pytest.raises(AuthorizationDenied) as exc:
        authorize(Role.MANAGER_ADMIN, USERS_MANAGE, target_role=Role.ADMIN)
    assert "Administrator" in exc.value.message or "Admin" in exc.value.message


def test_technician_cannot_delete_tickets():
    authorize(Role.TECHNICIAN, TICKETS_EDIT)
    with pytest.raises(AuthorizationDenied):
        authorize(Role.TECHNICIAN, TICKETS_DELETE)


def test_roles_accept_plain_strings():
    assert role_has_permission("admin", AUDIT_VIEW)
    assert can_view_page("technician", "tickets")
