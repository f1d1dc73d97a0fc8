import pytest

from app.helpdesk import create_app
from app.helpdesk.config import load_config, load_settings


@pytest.fixture()
def clean_env(monkeypatch):
    for k in (
        "SECRET_KEY", "ENV", "STORE_BACKEND", "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_TIMEOUT_SECONDS",
        "DATABASE_URL", "STORAGE_BACKEND", "STORAGE_ROOT",
    ):
        monkeypatch.delenv(k, raising=False)
    # keep a developer's .env out of these tests
    monkeypatch.setattr("app.helpdesk.load_dotenv", lambda *a, **kw: False)
    return monkeypatch


def test_defaults(clean_env):
    s = load_settings()
    assert s.store_backend == "supabase"
    assert s.supabase_timeout_seconds == 30
    assert s.storage_backend == "local"
    cfg = load_config()
    assert cfg["SESSION_COOKIE_HTTPONLY"] is True
    assert cfg["SESSION_COOKIE_SECURE"] is False


def test_missing_supabase_credentials_fail_at_startup(clean_env):
    clean_env.setenv("SUPABASE_URL", "https://project.supabase.co")
    with pytest.raises(RuntimeError) as exc:
        create_app()
    assert "SUPABASE_ANON_KEY" in str(exc.value)


def test_supabase_app_starts_with_credentials(clean_env):
    clean_env.setenv("SUPABASE_URL", "https://project.supabase.co")
    clean_env.setenv("SUPABASE_ANON_KEY", "anon")
    app = create_app()
    assert "sqlalchemy_engine" not in app.extensions
    assert app.test_client().get("/health").json == {"ok": True}


def test_production_rejects_default_secret(clean_env):
    clean_env.setenv("ENV", "production")
    clean_env.setenv("STORE_BACKEND", "sql")
    clean_env.setenv("DATABASE_URL", "postgresql+psycopg://u:p@localhost/db")
    with pytest.raises(RuntimeError):
        create_app()
