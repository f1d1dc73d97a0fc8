from datetime import date

from flask import Blueprint, abort, flash, g, render_template, request

from app.helpdesk.db import get_repository
from app.helpdesk.entities import AuditAction, EntityKind, User
from app.helpdesk.modules.reports.service import dashboard_stats
from app.helpdesk.rbac import AUDIT_VIEW, Page, require_page, require_permission

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/")
@require_page(Page.DASHBOARD)
def index():
    repo = get_repository()
    tickets = repo.list_tickets()
    return render_template(
        "admin/index.html",
        stats=dashboard_stats(tickets),
        recent_tickets=tickets[:5],
        user=_current_user(),
    )


@bp.get("/audit")
@require_permission(AUDIT_VIEW)
def audit_list():
    """
    Audit trail UI (newest first) with simple filters:
    - action (create/update/delete)
    - entity (User/Client/Ticket)
    - date range (YYYY-MM-DD, inclusive)
    """
    repo = get_repository()
    action = (request.args.get("action") or "").strip()
    entity = (request.args.get("entity") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    entries = repo.list_audit_logs()
    if action:
        entries = [e for e in entries if e.action.value == action]
    if entity:
        entries = [e for e in entries if e.entity == entity]
    if date_from:
        entries = [e for e in entries if e.created_at and e.created_at.date() >= date_from]
    if date_to:
        entries = [e for e in entries if e.created_at and e.created_at.date() <= date_to]

    users = {u.id: u for u in repo.list_users()}
    return render_template(
        "admin/audit/list.html",
        entries=entries,
        users=users,
        actions=list(AuditAction),
        entities=list(EntityKind),
        action=action,
        entity=entity,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )


@bp.get("/audit/<entry_id>")
@require_permission(AUDIT_VIEW)
def audit_detail(entry_id: str):
    repo = get_repository()
    entry = repo.get_audit_log(entry_id)
    if entry is None:
        abort(404)
    actor = repo.get_user(entry.user_id) if entry.user_id else None
    return render_template(
        "admin/audit/detail.html",
        entry=entry,
        actor=actor,
        current_entity=repo.get_audited_entity(entry),
    )
