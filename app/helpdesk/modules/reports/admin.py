from __future__ import annotations

from flask import Blueprint, current_app, render_template, request

from app.helpdesk.db import get_repository
from app.helpdesk.entities import Role, TicketStatus
from app.helpdesk.modules.print_settings.service import print_settings_service
from app.helpdesk.modules.reports.service import ReportFilters, filter_report_tickets, summarize
from app.helpdesk.rbac import Page, require_page

bp = Blueprint("reports", __name__)


def _report_context() -> dict:
    repo = get_repository()
    filters = ReportFilters.from_args(request.args)
    tickets = filter_report_tickets(repo.list_tickets(), filters)
    users = repo.list_users()
    return {
        "filters": filters,
        "tickets": tickets,
        "summary": summarize(tickets),
        "statuses": list(TicketStatus),
        "clients": {c.id: c for c in repo.list_clients()},
        "users": {u.id: u for u in users},
        "technicians": [u for u in users if u.role is Role.TECHNICIAN],
    }


@bp.get("/reports")
@require_page(Page.REPORTS)
def reports_index():
    return render_template("admin/reports/index.html", **_report_context())


@bp.get("/reports/print")
@require_page(Page.REPORTS)
def reports_print():
    return render_template(
        "admin/reports/print.html",
        header=print_settings_service(current_app.config).load(),
        **_report_context(),
    )
