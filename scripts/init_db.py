import sys
from pathlib import Path
import os

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.helpdesk.audit import AuditRecorder
from app.helpdesk.config import load_config
from app.helpdesk.db import create_sql_engine
from app.helpdesk.entities import Role
from app.helpdesk.repository import EntityRepository
from app.helpdesk.tables import table_store_from_config


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the first Admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@helpdesk.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_name = (os.environ.get("ADMIN_NAME") or "Administrator").strip()

    config = load_config()
    engine = None
    if database_url:
        config["STORE_BACKEND"] = "sql"
        config["DATABASE_URL"] = database_url
    if config["STORE_BACKEND"] == "sql":
        engine = create_sql_engine(config["DATABASE_URL"])

    # Use the store directly so this can run in release without importing app.wsgi (avoids recursion).
    store = table_store_from_config(config, engine=engine)
    repo = EntityRepository(store, AuditRecorder(store))
    try:
        if repo.get_user_by_email(admin_email):
            print(f"Admin user already present: {admin_email}")
            return
        # No signed-in actor exists yet, so this creation is not audited.
        repo.create_user(
            {"name": admin_name, "email": admin_email, "password": admin_password, "role": Role.ADMIN},
            actor_id=None,
        )
    finally:
        if engine is not None:
            engine.dispose()

    print("Initialized store (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    from dotenv import load_dotenv

    load_dotenv()
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
