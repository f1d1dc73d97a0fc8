from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.helpdesk.db import get_repository
from app.helpdesk.entities import User
from app.helpdesk.errors import ValidationRejectedByStore
from app.helpdesk.modules.clients.service import create_client, delete_client, parse_client_form, update_client
from app.helpdesk.rbac import CLIENTS_DELETE, CLIENTS_MANAGE, Page, require_page, require_permission

bp = Blueprint("clients", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/clients")
@require_page(Page.CLIENTS)
def clients_list():
    repo = get_repository()
    search = (request.args.get("q") or "").strip().lower()
    clients = repo.list_clients()
    if search:
        clients = [
            c for c in clients
            if search in c.name.lower() or search in c.contact_person.lower() or search in c.city.lower()
        ]
    return render_template("admin/clients/list.html", clients=clients, search=search)


@bp.get("/clients/new")
@require_permission(CLIENTS_MANAGE)
def clients_new_get():
    return render_template("admin/clients/form.html", client=None, form={})


@bp.post("/clients/new")
@require_permission(CLIENTS_MANAGE)
def clients_new_post():
    repo = get_repository()
    try:
        client = create_client(repo, _current_user(), parse_client_form(request.form))
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return render_template("admin/clients/form.html", client=None, form=request.form), 400
    flash(f"Client '{client.name}' created.", "success")
    return redirect(url_for("clients.clients_list"))


@bp.get("/clients/<client_id>/edit")
@require_permission(CLIENTS_MANAGE)
def client_edit_get(client_id: str):
    client = get_repository().get_client(client_id)
    if not client:
        abort(404)
    return render_template("admin/clients/form.html", client=client, form={})


@bp.post("/clients/<client_id>/edit")
@require_permission(CLIENTS_MANAGE)
def client_edit_post(client_id: str):
    repo = get_repository()
    client = repo.get_client(client_id)
    if not client:
        abort(404)
    try:
        client = update_client(repo, _current_user(), client_id, parse_client_form(request.form))
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return render_template("admin/clients/form.html", client=client, form=request.form), 400
    flash(f"Client '{client.name}' updated.", "success")
    return redirect(url_for("clients.clients_list"))


@bp.post("/clients/<client_id>/delete")
@require_permission(CLIENTS_DELETE)
def client_delete(client_id: str):
    repo = get_repository()
    try:
        deleted = delete_client(repo, _current_user(), client_id)
    except ValidationRejectedByStore:
        flash("This client still has tickets and cannot be deleted.", "danger")
        return redirect(url_for("clients.clients_list"))
    if not deleted:
        abort(404)
    flash("Client deleted.", "success")
    return redirect(url_for("clients.clients_list"))
