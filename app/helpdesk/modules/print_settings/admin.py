from __future__ import annotations

from dataclasses import replace

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from app.helpdesk.errors import LogoTooLarge
from app.helpdesk.modules.print_settings.service import logo_data_url, print_settings_service
from app.helpdesk.rbac import SETTINGS_MANAGE, require_permission
from app.helpdesk.storage import StorageError

bp = Blueprint("print_settings", __name__)


@bp.get("/settings")
@require_permission(SETTINGS_MANAGE)
def settings_get():
    settings = print_settings_service(current_app.config).load()
    return render_template("admin/settings/print_header.html", settings=settings)


@bp.post("/settings")
@require_permission(SETTINGS_MANAGE)
def settings_post():
    service = print_settings_service(current_app.config)
    settings = replace(
        service.load(),
        company_name=(request.form.get("company_name") or "").strip(),
        cnpj=(request.form.get("cnpj") or "").strip(),
        phone=(request.form.get("phone") or "").strip(),
        address=(request.form.get("address") or "").strip(),
    )

    if request.form.get("remove_logo"):
        settings = replace(settings, logo=None)
    upload = request.files.get("logo")
    if upload and upload.filename:
        try:
            settings = replace(settings, logo=logo_data_url(upload.read(), upload.mimetype))
        except LogoTooLarge as e:
            flash(e.message, "danger")
            return redirect(url_for("print_settings.settings_get"))
        except ValueError as e:
            flash(str(e), "danger")
            return redirect(url_for("print_settings.settings_get"))

    try:
        service.save(settings)
    except StorageError as e:
        current_app.logger.error("Print settings save failed: %s", e)
        flash("Could not save print settings. Check the storage configuration.", "danger")
        return redirect(url_for("print_settings.settings_get"))

    flash("Print settings saved.", "success")
    return redirect(url_for("print_settings.settings_get"))
