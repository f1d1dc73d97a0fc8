"""
Table store: the one seam between the application and the backing store.

Two implementations share the same row-dict contract:

- RestTableStore: the Supabase (PostgREST) REST endpoint, addressed by the
  project URL and the public anon key. This is the production store.
- SqlTableStore: SQLAlchemy Core over app.helpdesk.models, for local
  development and tests.

Both assign id / created_at / updated_at / ticket code themselves; callers
never send them.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from sqlalchemy import delete as sa_delete
from sqlalchemy import insert as sa_insert
from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from app.helpdesk.errors import StoreUnavailable, ValidationRejectedByStore
from app.helpdesk.models import Base, utcnow

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class TableStore:
    def select(
        self,
        table: str,
        *,
        columns: tuple[str, ...] | None = None,
        eq: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        raise NotImplementedError

    def insert(self, table: str, values: Mapping[str, Any]) -> Row:
        raise NotImplementedError

    def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> list[Row]:
        raise NotImplementedError

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> list[Row]:
        raise NotImplementedError


# ---------- Supabase / PostgREST ----------


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Cannot serialize {type(value).__name__}")


@dataclass(frozen=True)
class RestTableStore(TableStore):
    base_url: str
    api_key: str
    timeout_seconds: int = 30
    read_retries: int = 2

    def _url(self, table: str, params: list[tuple[str, str]]) -> str:
        url = f"{self.base_url.rstrip('/')}/rest/v1/{urllib.parse.quote(table)}"
        if params:
            url += "?" + urllib.parse.urlencode(params)
        return url

    @staticmethod
    def _filters(eq: Mapping[str, Any] | None) -> list[tuple[str, str]]:
        if not eq:
            return []
        out = []
        for col, value in eq.items():
            op = "is" if value is None else "eq"
            out.append((col, f"{op}.{_encode_value(value)}"))
        return out

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def request_json(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]] | None = None,
        body: Any = None,
    ) -> Any:
        url = self._url(table, params or [])
        data = json.dumps(body, default=_json_default).encode("utf-8") if body is not None else None
        # Only reads are retried; a repeated write could duplicate an insert.
        attempts = self.read_retries + 1 if method == "GET" else 1

        last_err: Exception | None = None
        for attempt in range(attempts):
            req = urllib.request.Request(url, data=data, method=method)
            for name, value in self._headers().items():
                req.add_header(name, value)
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
            except urllib.error.HTTPError as e:
                try:
                    payload = e.read().decode("utf-8", errors="ignore")
                except Exception:
                    payload = ""
                if e.code == 429 or e.code >= 500:
                    logger.warning("Store %s %s returned HTTP %s (attempt %s)", method, table, e.code, attempt + 1)
                    last_err = e
                    if attempt + 1 < attempts:
                        time.sleep(min(0.5 * (attempt + 1), 2))
                    continue
                raise self._client_error(e.code, payload, method, table) from e
            except (urllib.error.URLError, TimeoutError, OSError) as e:
                logger.warning("Store %s %s unreachable: %s", method, table, e)
                last_err = e
                if attempt + 1 < attempts:
                    time.sleep(min(0.5 * (attempt + 1), 2))
                continue

            if not raw:
                return []
            try:
                return json.loads(raw.decode("utf-8"))
            except ValueError as e:
                raise StoreUnavailable("The data service returned an invalid response.") from e

        raise StoreUnavailable() from last_err

    @staticmethod
    def _client_error(status: int, payload: str, method: str, table: str) -> Exception:
        code = ""
        message = ""
        try:
            body = json.loads(payload) if payload else {}
            code = str(body.get("code") or "")
            message = str(body.get("message") or "")
        except ValueError:
            pass
        if status == 409 or code.startswith("23"):
            logger.info("Store rejected %s %s: %s %s", method, table, code, message)
            if code == "23505":
                return ValidationRejectedByStore("A record with the same unique value already exists.")
            return ValidationRejectedByStore(message or None)
        if status in (400, 422):
            return ValidationRejectedByStore(message or None)
        logger.error("Store %s %s failed with HTTP %s: %s", method, table, status, payload[:300])
        return StoreUnavailable()

    def select(self, table, *, columns=None, eq=None, order_by=None, descending=False):
        params = [("select", ",".join(columns) if columns else "*")]
        params.extend(self._filters(eq))
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        rows = self.request_json("GET", table, params=params)
        return rows if isinstance(rows, list) else []

    def insert(self, table, values):
        rows = self.request_json("POST", table, body=dict(values))
        if not isinstance(rows, list) or not rows:
            raise StoreUnavailable("The data service did not return the created record.")
        return rows[0]

    def update(self, table, values, *, eq):
        rows = self.request_json("PATCH", table, params=self._filters(eq), body=dict(values))
        return rows if isinstance(rows, list) else []

    def delete(self, table, *, eq):
        rows = self.request_json("DELETE", table, params=self._filters(eq))
        return rows if isinstance(rows, list) else []


# ---------- SQLAlchemy ----------


@dataclass(frozen=True)
class SqlTableStore(TableStore):
    engine: Engine

    def _table(self, name: str):
        try:
            return Base.metadata.tables[name]
        except KeyError as e:
            raise ValueError(f"Unknown table: {name}") from e

    @staticmethod
    def _where(table, eq: Mapping[str, Any] | None):
        clauses = []
        for col, value in (eq or {}).items():
            column = table.c[col]
            clauses.append(column.is_(None) if value is None else column == value)
        return clauses

    @staticmethod
    def _plain(values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}

    def _run(self, fn):
        try:
            with self.engine.begin() as conn:
                return fn(conn)
        except IntegrityError as e:
            logger.info("Store rejected write: %s", e.orig)
            raise ValidationRejectedByStore("The record violates a data constraint (duplicate or missing value).") from e
        except (DBAPIError, SQLAlchemyError) as e:
            logger.error("Store failure: %s", e)
            raise StoreUnavailable() from e

    def select(self, table, *, columns=None, eq=None, order_by=None, descending=False):
        t = self._table(table)
        cols = [t.c[c] for c in columns] if columns else [t]
        stmt = sa_select(*cols).where(*self._where(t, eq))
        if order_by:
            col = t.c[order_by]
            stmt = stmt.order_by(col.desc() if descending else col.asc())

        def _go(conn):
            return [dict(r._mapping) for r in conn.execute(stmt)]

        return self._run(_go)

    def insert(self, table, values):
        t = self._table(table)
        data = self._plain(values)
        now = utcnow()
        for col in ("created_at", "updated_at"):
            if col in t.c:
                data[col] = now
        if "id" in t.c and not data.get("id"):
            data["id"] = str(uuid.uuid4())

        def _go(conn):
            conn.execute(sa_insert(t).values(**data))
            return dict(conn.execute(sa_select(t).where(t.c["id"] == data["id"])).one()._mapping)

        return self._run(_go)

    def update(self, table, values, *, eq):
        t = self._table(table)
        data = self._plain(values)
        if "updated_at" in t.c:
            data["updated_at"] = utcnow()
        where = self._where(t, eq)

        def _go(conn):
            ids = [r[0] for r in conn.execute(sa_select(t.c["id"]).where(*where))]
            if not ids:
                return []
            conn.execute(sa_update(t).where(t.c["id"].in_(ids)).values(**data))
            return [dict(r._mapping) for r in conn.execute(sa_select(t).where(t.c["id"].in_(ids)))]

        return self._run(_go)

    def delete(self, table, *, eq):
        t = self._table(table)
        where = self._where(t, eq)

        def _go(conn):
            rows = [dict(r._mapping) for r in conn.execute(sa_select(t).where(*where))]
            if rows:
                conn.execute(sa_delete(t).where(t.c["id"].in_([r["id"] for r in rows])))
            return rows

        return self._run(_go)


def table_store_from_config(config: Mapping[str, Any], *, engine: Engine | None = None) -> TableStore:
    backend = (config.get("STORE_BACKEND") or "supabase").strip().lower()
    if backend == "sql":
        if engine is None:
            raise RuntimeError("STORE_BACKEND=sql requires an initialized SQLAlchemy engine.")
        return SqlTableStore(engine=engine)
    if backend != "supabase":
        raise RuntimeError(f"Unknown STORE_BACKEND: {backend!r} (expected 'supabase' or 'sql').")

    url = (config.get("SUPABASE_URL") or "").strip()
    key = (config.get("SUPABASE_ANON_KEY") or "").strip()
    missing = [name for name, value in (("SUPABASE_URL", url), ("SUPABASE_ANON_KEY", key)) if not value]
    if missing:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")
    return RestTableStore(base_url=url, api_key=key, timeout_seconds=int(config.get("SUPABASE_TIMEOUT_SECONDS") or 30))
