import pytest

from app.helpdesk import create_app
from app.helpdesk import auth as auth_module
from app.helpdesk.db import get_repository
from app.helpdesk.entities import Role
from app.helpdesk.identity import SESSION_KEY
from app.helpdesk.models import Base


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", "sql")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    auth_module._login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    repo = get_repository(app)
    repo.create_user({"name": "Admin", "email": "admin@example.com", "password": "pw-admin", "role": Role.ADMIN}, actor_id=None)
    repo.create_user({"name": "Tech", "email": "tech@example.com", "password": "pw-tech", "role": Role.TECHNICIAN}, actor_id=None)

    return app.test_client()


def _login(client, email, password):
    return client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=False)


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").data == b"ok"


def test_login_and_admin_access(client):
    # Anonymous is sent to the login page
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = _login(client, "ADMIN@example.com", "pw-admin")
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Welcome, Admin" in r.data


def test_login_wrong_password_leaves_no_session(client):
    r = _login(client, "admin@example.com", "nope")
    assert r.status_code == 302
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess
    r = client.get("/auth/login")
    assert b"Invalid email or password." in r.data


def test_session_never_holds_password(client):
    _login(client, "admin@example.com", "pw-admin")
    with client.session_transaction() as sess:
        raw = sess[SESSION_KEY]
    assert "admin@example.com" in raw
    assert "password" not in raw
    assert "pw-admin" not in raw


def test_logout_clears_identity(client):
    _login(client, "admin@example.com", "pw-admin")
    r = client.get("/auth/logout")
    assert r.status_code == 302
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess
    assert client.get("/admin/").status_code == 302


def test_technician_denied_admin_only_pages(client):
    _login(client, "tech@example.com", "pw-tech")
    assert client.get("/admin/").status_code == 200
    assert client.get("/admin/tickets").status_code == 200
    r = client.get("/admin/audit")
    assert r.status_code == 403
    assert b"You do not have permission" in r.data
    assert client.get("/admin/users").status_code == 403
    assert client.get("/admin/clients").status_code == 403
    assert client.get("/admin/settings").status_code == 403


def test_post_without_csrf_token_rejected(client):
    _login(client, "admin@example.com", "pw-admin")
    r = client.post("/admin/clients/new", data={"name": "X"})
    assert r.status_code == 400


def test_login_rate_limited_after_five_failures(client):
    for _ in range(5):
        _login(client, "admin@example.com", "bad")
    r = _login(client, "admin@example.com", "pw-admin")
    assert r.status_code == 302
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def _add_admin(client):
    repo = get_repository(client.application)
    boss = repo.create_user(
        {"name": "Boss", "email": "boss@example.com", "password": "pw-boss", "role": Role.ADMIN}, actor_id=None
    )
    _login(client, "boss@example.com", "pw-boss")
    assert client.get("/admin/audit").status_code == 200
    return repo, boss


def test_deleted_user_loses_access(client):
    repo, boss = _add_admin(client)
    repo.delete_user(boss.id, actor_id=None)

    r = client.get("/admin/audit")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess


def test_demoted_user_gets_new_role_on_next_request(client):
    repo, boss = _add_admin(client)
    repo.update_user(boss.id, {"role": Role.TECHNICIAN}, actor_id=None)

    assert client.get("/admin/audit").status_code == 403
    assert client.get("/admin/tickets").status_code == 200
    with client.session_transaction() as sess:
        assert '"technician"' in sess[SESSION_KEY]


def test_audit_detail_page(client):
    repo, boss = _add_admin(client)
    repo.update_user(boss.id, {"name": "Big Boss"}, actor_id=boss.id)
    entry = repo.list_audit_logs()[0]

    r = client.get(f"/admin/audit/{entry.id}")
    assert r.status_code == 200
    assert b"Big Boss" in r.data
    assert client.get("/admin/audit/no-such-entry").status_code == 404
