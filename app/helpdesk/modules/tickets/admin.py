from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.helpdesk.db import get_repository
from app.helpdesk.entities import Role, TicketPriority, TicketStatus, User
from app.helpdesk.errors import ValidationRejectedByStore
from app.helpdesk.modules.print_settings.service import print_settings_service
from app.helpdesk.modules.tickets.service import (
    DEFAULT_SORT,
    SORT_ORDERS,
    create_ticket,
    delete_ticket,
    filter_tickets,
    parse_ticket_form,
    sort_tickets,
    ticket_locations,
    update_ticket,
)
from app.helpdesk.rbac import TICKETS_CREATE, TICKETS_DELETE, TICKETS_EDIT, Page, require_page, require_permission

bp = Blueprint("tickets", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _form_context(repo) -> dict:
    return {
        "clients": repo.list_clients(),
        "technicians": [u for u in repo.list_users() if u.role is Role.TECHNICIAN],
        "statuses": list(TicketStatus),
        "priorities": list(TicketPriority),
    }


# ---------- List ----------
@bp.get("/tickets")
@require_page(Page.TICKETS)
def tickets_list():
    repo = get_repository()
    tickets = repo.list_tickets()

    search = (request.args.get("q") or "").strip()
    technician_filter = (request.args.get("technician_id") or "").strip()
    location_filter = (request.args.get("location") or "").strip()
    status_filter = (request.args.get("status") or "").strip()
    priority_filter = (request.args.get("priority") or "").strip()
    sort = (request.args.get("sort") or DEFAULT_SORT).strip()
    if sort not in SORT_ORDERS:
        sort = DEFAULT_SORT

    shown = filter_tickets(
        tickets,
        search=search,
        technician_id=technician_filter,
        location=location_filter,
        status=status_filter,
        priority=priority_filter,
    )
    shown = sort_tickets(shown, sort)

    users = repo.list_users()
    return render_template(
        "admin/tickets/list.html",
        tickets=shown,
        clients={c.id: c for c in repo.list_clients()},
        users={u.id: u for u in users},
        technicians=[u for u in users if u.role is Role.TECHNICIAN],
        locations=ticket_locations(tickets),
        statuses=list(TicketStatus),
        priorities=list(TicketPriority),
        sort_orders=SORT_ORDERS,
        search=search,
        technician_filter=technician_filter,
        location_filter=location_filter,
        status_filter=status_filter,
        priority_filter=priority_filter,
        sort=sort,
    )


# ---------- New ----------
@bp.get("/tickets/new")
@require_permission(TICKETS_CREATE)
def tickets_new_get():
    repo = get_repository()
    return render_template("admin/tickets/form.html", ticket=None, form={}, **_form_context(repo))


@bp.post("/tickets/new")
@require_permission(TICKETS_CREATE)
def tickets_new_post():
    repo = get_repository()
    u = _current_user()
    payload = parse_ticket_form(request.form)
    try:
        ticket = create_ticket(repo, u, payload)
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return render_template("admin/tickets/form.html", ticket=None, form=request.form, **_form_context(repo)), 400

    current_app.logger.info("Ticket %s created by user_id=%s", ticket.code, u.id)
    flash(f"Ticket {ticket.code} created.", "success")
    return redirect(url_for("tickets.tickets_list"))


# ---------- Edit ----------
@bp.get("/tickets/<ticket_id>/edit")
@require_permission(TICKETS_EDIT)
def ticket_edit_get(ticket_id: str):
    repo = get_repository()
    ticket = repo.get_ticket(ticket_id)
    if not ticket:
        abort(404)
    return render_template("admin/tickets/form.html", ticket=ticket, form={}, **_form_context(repo))


@bp.post("/tickets/<ticket_id>/edit")
@require_permission(TICKETS_EDIT)
def ticket_edit_post(ticket_id: str):
    repo = get_repository()
    u = _current_user()
    ticket = repo.get_ticket(ticket_id)
    if not ticket:
        abort(404)

    payload = parse_ticket_form(request.form)
    try:
        update_ticket(repo, u, ticket_id, payload)
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return render_template("admin/tickets/form.html", ticket=ticket, form=request.form, **_form_context(repo)), 400

    flash(f"Ticket {ticket.code} updated.", "success")
    return redirect(url_for("tickets.tickets_list"))


# ---------- Delete ----------
@bp.post("/tickets/<ticket_id>/delete")
@require_permission(TICKETS_DELETE)
def ticket_delete(ticket_id: str):
    repo = get_repository()
    u = _current_user()
    try:
        deleted = delete_ticket(repo, u, ticket_id)
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return redirect(url_for("tickets.tickets_list"))
    if not deleted:
        abort(404)
    flash("Ticket deleted.", "success")
    return redirect(url_for("tickets.tickets_list"))


# ---------- Work order ----------
@bp.get("/tickets/<ticket_id>/print")
@require_page(Page.TICKETS)
def ticket_print(ticket_id: str):
    repo = get_repository()
    ticket = repo.get_ticket(ticket_id)
    if not ticket:
        abort(404)
    technician = repo.get_user(ticket.technician_id) if ticket.technician_id else None
    return render_template(
        "admin/tickets/print.html",
        ticket=ticket,
        client=repo.get_client(ticket.client_id),
        technician=technician,
        header=print_settings_service(current_app.config).load(),
    )
