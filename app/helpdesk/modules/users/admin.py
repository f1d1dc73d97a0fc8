from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.helpdesk.db import get_repository
from app.helpdesk.entities import User
from app.helpdesk.errors import ValidationRejectedByStore
from app.helpdesk.modules.users.service import create_user, delete_user, parse_user_form, update_user
from app.helpdesk.rbac import USERS_MANAGE, can_manage_user, get_available_roles, require_permission

bp = Blueprint("users", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _render_form(user: User | None, form, status: int = 200):
    actor = _current_user()
    return (
        render_template(
            "admin/users/form.html",
            user=user,
            form=form,
            roles=get_available_roles(actor.role),
        ),
        status,
    )


@bp.get("/users")
@require_permission(USERS_MANAGE)
def users_list():
    actor = _current_user()
    users = get_repository().list_users()
    return render_template(
        "admin/users/list.html",
        users=users,
        manageable={u.id for u in users if can_manage_user(actor.role, u.role)},
    )


@bp.get("/users/new")
@require_permission(USERS_MANAGE)
def users_new_get():
    return _render_form(None, {})


@bp.post("/users/new")
@require_permission(USERS_MANAGE)
def users_new_post():
    repo = get_repository()
    try:
        user = create_user(repo, _current_user(), parse_user_form(request.form, creating=True))
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return _render_form(None, request.form, 400)
    flash(f"User '{user.name}' created.", "success")
    return redirect(url_for("users.users_list"))


@bp.get("/users/<user_id>/edit")
@require_permission(USERS_MANAGE)
def user_edit_get(user_id: str):
    user = get_repository().get_user(user_id)
    if not user:
        abort(404)
    return _render_form(user, {})


@bp.post("/users/<user_id>/edit")
@require_permission(USERS_MANAGE)
def user_edit_post(user_id: str):
    repo = get_repository()
    user = repo.get_user(user_id)
    if not user:
        abort(404)
    try:
        user = update_user(repo, _current_user(), user_id, parse_user_form(request.form, creating=False))
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return _render_form(user, request.form, 400)
    flash(f"User '{user.name}' updated.", "success")
    return redirect(url_for("users.users_list"))


@bp.post("/users/<user_id>/delete")
@require_permission(USERS_MANAGE)
def user_delete(user_id: str):
    repo = get_repository()
    try:
        deleted = delete_user(repo, _current_user(), user_id)
    except ValidationRejectedByStore as e:
        flash(e.message, "danger")
        return redirect(url_for("users.users_list"))
    if not deleted:
        abort(404)
    flash("User deleted.", "success")
    return redirect(url_for("users.users_list"))
