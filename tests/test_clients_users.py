import pytest

from app.helpdesk.entities import Client, Role, User
from app.helpdesk.errors import AuthorizationDenied, ValidationRejectedByStore
from app.helpdesk.modules.clients.service import create_client, delete_client, parse_client_form, update_client
from app.helpdesk.modules.users.service import create_user, delete_user, update_user


class StubRepository:
    """Counts every repository call; returns canned records."""

    def __init__(self, users=None):
        self.calls = []
        self.users = {u.id: u for u in (users or [])}

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append(name)
            if name == "get_user":
                return self.users.get(args[0])
            if name in ("delete_client", "delete_user"):
                return True
            if name == "create_client":
                return Client(id="c1", **{k: args[0].get(k) for k in ("name", "contact_person", "email", "phone", "address", "city", "state")})
            if name in ("create_user", "update_user"):
                fields = args[-1]
                return User(id="u-new", name=fields["name"], email=fields["email"], role=fields["role"])
            return None

        return record


def _user(role, uid=None):
    return User(id=uid or role.value, name=role.label, email=f"{role.value}@example.com", role=role)


TECH = _user(Role.TECHNICIAN)
MANAGER = _user(Role.MANAGER)
MANAGER_ADMIN = _user(Role.MANAGER_ADMIN)
ADMIN = _user(Role.ADMIN)

CLIENT_FORM = {
    "name": "Banco Central",
    "contact_person": "Carlos",
    "email": "carlos@example.com",
    "phone": "2155550000",
    "address": "",
    "city": "Rio de Janeiro",
    "state": "rj",
}


def test_technician_delete_client_denied_before_store():
    repo = StubRepository()
    with pytest.raises(AuthorizationDenied):
        delete_client(repo, TECH, "c1")
    assert repo.calls == []


def test_technician_create_client_denied_before_store():
    repo = StubRepository()
    with pytest.raises(AuthorizationDenied):
        create_client(repo, TECH, parse_client_form(CLIENT_FORM))
    assert repo.calls == []


def test_manager_creates_client_with_uppercased_state():
    repo = StubRepository()
    client = create_client(repo, MANAGER, parse_client_form(CLIENT_FORM))
    assert repo.calls == ["create_client"]
    assert client.state == "RJ"


def test_client_state_must_be_two_letters():
    repo = StubRepository()
    with pytest.raises(ValidationRejectedByStore) as exc:
        update_client(repo, MANAGER, "c1", {"state": "RJX"})
    assert "2-letter" in exc.value.message
    assert repo.calls == []


def test_client_required_fields():
    repo = StubRepository()
    with pytest.raises(ValidationRejectedByStore) as exc:
        create_client(repo, MANAGER, parse_client_form({**CLIENT_FORM, "contact_person": " ", "phone": ""}))
    assert "Contact person is required." in exc.value.message
    assert "Phone is required." in exc.value.message


def test_manager_cannot_manage_users():
    repo = StubRepository()
    with pytest.raises(AuthorizationDenied):
        create_user(repo, MANAGER, {"name": "N", "email": "n@example.com", "password": "secret1", "role": "technician"})
    assert repo.calls == []


def test_manager_admin_cannot_create_admin():
    repo = StubRepository()
    with pytest.raises(AuthorizationDenied):
        create_user(repo, MANAGER_ADMIN, {"name": "N", "email": "n@example.com", "password": "secret1", "role": "admin"})
    assert repo.calls == []


def test_manager_admin_creates_technician():
    repo = StubRepository()
    user = create_user(repo, MANAGER_ADMIN, {"name": "N", "email": "n@example.com", "password": "secret1", "role": "technician"})
    assert repo.calls == ["create_user"]
    assert user.role is Role.TECHNICIAN


def test_short_password_rejected():
    repo = StubRepository()
    with pytest.raises(ValidationRejectedByStore):
        create_user(repo, ADMIN, {"name": "N", "email": "n@example.com", "password": "123", "role": "technician"})
    assert repo.calls == []


def test_manager_admin_cannot_edit_or_delete_an_admin():
    target = _user(Role.ADMIN, uid="a2")
    repo = StubRepository(users=[target])
    with pytest.raises(AuthorizationDenied):
        update_user(repo, MANAGER_ADMIN, "a2", {"name": "X", "email": "x@example.com", "role": "technician"})
    with pytest.raises(AuthorizationDenied):
        delete_user(repo, MANAGER_ADMIN, "a2")
    assert "update_user" not in repo.calls
    assert "delete_user" not in repo.calls


def test_manager_admin_cannot_promote_to_admin():
    target = _user(Role.MANAGER, uid="m2")
    repo = StubRepository(users=[target])
    with pytest.raises(AuthorizationDenied):
        update_user(repo, MANAGER_ADMIN, "m2", {"name": "X", "email": "x@example.com", "role": "admin"})
    assert "update_user" not in repo.calls


def test_admin_deletes_user():
    target = _user(Role.MANAGER, uid="m2")
    repo = StubRepository(users=[target])
    assert delete_user(repo, ADMIN, "m2") is True
    assert repo.calls == ["get_user", "delete_user"]
