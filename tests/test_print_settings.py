import io

import pytest

from app.helpdesk import create_app
from app.helpdesk import auth as auth_module
from app.helpdesk.db import get_repository
from app.helpdesk.entities import PrintHeaderSettings, Role
from app.helpdesk.errors import LogoTooLarge
from app.helpdesk.models import Base
from app.helpdesk.modules.print_settings.service import (
    MAX_LOGO_BYTES,
    SETTINGS_KEY,
    PrintSettingsService,
    logo_data_url,
)
from app.helpdesk.storage import LocalStorage, StorageError


@pytest.fixture()
def service(tmp_path):
    return PrintSettingsService(LocalStorage(root=tmp_path))


def test_defaults_when_nothing_saved(service):
    assert service.load() == PrintHeaderSettings()


def test_save_and_load(service):
    settings = PrintHeaderSettings(
        company_name="Tec Serviços", cnpj="12.345.678/0001-90", phone="21 5555", address="Rua A", logo=None
    )
    service.save(settings)
    assert service.load() == settings


def test_corrupt_document_falls_back_to_defaults(service, tmp_path):
    (tmp_path / "settings").mkdir()
    (tmp_path / SETTINGS_KEY).write_bytes(b"{broken")
    assert service.load() == PrintHeaderSettings()


def test_logo_over_two_megabytes_rejected():
    with pytest.raises(LogoTooLarge) as exc:
        logo_data_url(b"x" * (MAX_LOGO_BYTES + 1), "image/png")
    assert exc.value.message == "The logo image must be at most 2MB."


def test_logo_becomes_data_url():
    url = logo_data_url(b"\x89PNG", "image/png")
    assert url == "data:image/png;base64,iVBORw=="


def test_storage_rejects_path_traversal(tmp_path):
    with pytest.raises(StorageError):
        LocalStorage(root=tmp_path).get_bytes("../etc/passwd")


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORE_BACKEND", "sql")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    auth_module._login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    repo = get_repository(app)
    repo.create_user({"name": "Admin", "email": "admin@example.com", "password": "pw-admin", "role": Role.ADMIN}, actor_id=None)
    repo.create_user({"name": "Mgr", "email": "mgr@example.com", "password": "pw-mgr", "role": Role.MANAGER_ADMIN}, actor_id=None)
    return app.test_client()


def _login(client, email, password):
    client.post("/auth/login", data={"email": email, "password": password})
    client.get("/admin/")
    with client.session_transaction() as sess:
        return sess["csrf_token"]


def test_settings_page_is_admin_only(client):
    _login(client, "mgr@example.com", "pw-mgr")
    assert client.get("/admin/settings").status_code == 403


def test_admin_saves_header_with_logo(client, tmp_path):
    token = _login(client, "admin@example.com", "pw-admin")
    r = client.post(
        "/admin/settings",
        data={
            "csrf_token": token,
            "company_name": "Helpdesk Ltda",
            "cnpj": "00.000.000/0001-00",
            "phone": "",
            "address": "",
            "logo": (io.BytesIO(b"\x89PNG"), "logo.png", "image/png"),
        },
        content_type="multipart/form-data",
    )
    assert r.status_code == 302
    saved = PrintSettingsService(LocalStorage(root=tmp_path / "storage")).load()
    assert saved.company_name == "Helpdesk Ltda"
    assert saved.logo.startswith("data:image/png;base64,")

    r = client.get("/admin/settings")
    assert b"Helpdesk Ltda" in r.data
