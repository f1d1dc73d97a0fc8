"""
Release-phase helper for container deploys.

Goal:
- Fail fast if DATABASE_URL is missing when the schema is managed from here.
- Run alembic migrations.
- Seed the first admin user (idempotent; does NOT overwrite existing passwords).

With STORE_BACKEND=supabase the schema is owned by the Supabase project; point
DATABASE_URL at its Postgres connection string to migrate it from here, or
leave it unset to skip the migration step.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def run_release() -> None:
    backend = (os.environ.get("STORE_BACKEND") or "supabase").strip().lower()
    env = (os.environ.get("ENV") or "").strip().lower()
    if backend == "sql":
        db_url = _require_env("DATABASE_URL")
    else:
        db_url = (os.environ.get("DATABASE_URL") or "").strip()
    # Guardrail: prevent accidental prod deploys against SQLite.
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print("=== Helpdesk Pro release start ===", flush=True)
    print(f"ENV={env or '(unset)'} STORE_BACKEND={backend}", flush=True)

    if db_url:
        print("Running Alembic migrations...", flush=True)
        from alembic import command
        from alembic.config import Config

        cfg = Config(str(ROOT / "alembic.ini"))
        cfg.set_main_option("sqlalchemy.url", db_url)
        command.upgrade(cfg, "head")
        print("Migrations complete.", flush=True)
    else:
        print("DATABASE_URL not set; skipping migrations.", flush=True)

    print("Seeding admin user (idempotent)...", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url if backend == "sql" else None)
    print("Seed complete.", flush=True)
    print("=== Helpdesk Pro release done ===", flush=True)


def main() -> None:
    run_release()


if __name__ == "__main__":
    main()
