"""Admin API: dashboard, tenure payouts, users, financial reports and audit logs."""

from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from core import AuditAction
from core.exceptions import (
    ApplicationError,
    DataFetchError,
    DrawAlreadyConfirmedError,
    DrawNotFoundError,
    InvalidRoleError,
    StaleDrawError,
    UserNotFoundError,
    WriteError,
)
from services import run_coroutine_sync
from services.audit_service import AuditService
from services.payout_service import PayoutManager
from services.reports import ReportService
from services.user_service import UserService
from web.auth import AdminCredentials, AdminUser, validate_credentials
from web.config_middleware import PAYOUT_DRAWS, PAYOUTS_CONFIRMED


admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

SESSION_DRAW_KEY = "payout_draw_id"


def _payout_manager() -> PayoutManager:
    return current_app.config["PAYOUT_MANAGER"]


def _report_service() -> ReportService:
    return current_app.config["REPORT_SERVICE"]


def _audit_service() -> AuditService:
    return current_app.config["AUDIT_SERVICE"]


def _user_service() -> UserService:
    return current_app.config["USER_SERVICE"]


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def _client_info() -> dict:
    return {"ip_address": request.remote_addr, "user_agent": request.headers.get("User-Agent")}


def _audit(action: AuditAction, user_id=None, metadata=None) -> None:
    """Record an admin action; a failed write never fails the request."""
    try:
        run_coroutine_sync(_audit_service().log_action(
            action.value, user_id=user_id, metadata=metadata, **_client_info()
        ))
    except WriteError as exc:
        current_app.logger.error(f"Failed to write {action.value} audit entry: {exc}")


@admin_bp.route("/csrf-token")
def csrf_token():
    return jsonify(csrf_token=generate_csrf())


@admin_bp.route("/login", methods=["POST"])
def login():
    data = _payload()
    credentials: AdminCredentials = current_app.config["ADMIN_CREDENTIALS"]
    username = str(data.get("username", ""))
    password = str(data.get("password", ""))

    if validate_credentials(credentials, username, password):
        login_user(AdminUser(username=credentials.username))
        _audit(AuditAction.LOGIN, metadata={"username": credentials.username})
        return jsonify(status="ok", username=credentials.username)

    _audit(AuditAction.LOGIN_FAILED, metadata={"reason": "Invalid admin credentials", "username": username})
    return jsonify(error="Invalid admin credentials"), 401


@admin_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    _audit(AuditAction.LOGOUT, metadata={"username": current_user.username})
    session.pop(SESSION_DRAW_KEY, None)
    logout_user()
    return jsonify(status="ok")


@admin_bp.route("/")
@login_required
def dashboard():
    stats = run_coroutine_sync(_report_service().dashboard_stats())
    return jsonify(stats)


# ==================== TENURE PAYOUT ====================

@admin_bp.route("/tenure-payout")
@login_required
def tenure_payout():
    eligible = run_coroutine_sync(_payout_manager().load_eligible())
    return jsonify(
        total_eligible=len(eligible),
        eligible=[m.to_dict() for m in eligible],
        draw_id=session.get(SESSION_DRAW_KEY),
    )


@admin_bp.route("/tenure-payout/draw", methods=["POST"])
@login_required
def run_draw():
    try:
        result = run_coroutine_sync(_payout_manager().run_draw(drawn_by=current_user.username))
    except ApplicationError as exc:
        current_app.logger.error(f"Error calculating winners: {exc}")
        session.pop(SESSION_DRAW_KEY, None)
        return jsonify(error="Unable to calculate winners at this time.", winners=[]), 500

    # Only the latest draw of this session may be confirmed
    session[SESSION_DRAW_KEY] = result.draw_id
    PAYOUT_DRAWS.inc()
    return jsonify(result.to_dict())


@admin_bp.route("/tenure-payout/confirm", methods=["POST"])
@login_required
def confirm_payouts():
    requested = _payload().get("draw_id")
    try:
        requested_id = int(requested) if requested not in (None, "") else None
    except (TypeError, ValueError):
        return jsonify(error="Invalid draw id"), 400

    try:
        count = run_coroutine_sync(_payout_manager().confirm_payouts(
            session.get(SESSION_DRAW_KEY),
            requested_draw_id=requested_id,
            admin_username=current_user.username,
            **_client_info(),
        ))
    except StaleDrawError as exc:
        return jsonify(error=str(exc)), 409
    except DrawAlreadyConfirmedError as exc:
        session.pop(SESSION_DRAW_KEY, None)
        return jsonify(error=str(exc)), 409
    except DrawNotFoundError as exc:
        session.pop(SESSION_DRAW_KEY, None)
        return jsonify(error=str(exc)), 404
    except WriteError as exc:
        current_app.logger.error(f"Error processing payouts: {exc}")
        return jsonify(error="Failed to process payouts."), 500

    if count == 0:
        return "", 204

    session.pop(SESSION_DRAW_KEY, None)
    PAYOUTS_CONFIRMED.inc(count)
    return jsonify(message="Payouts processed successfully.", payouts=count)


@admin_bp.route("/tenure-payout/draws")
@login_required
def list_draws():
    limit = request.args.get("limit", 50, type=int)
    draws = run_coroutine_sync(_payout_manager().list_draws(limit=limit))
    return jsonify(draws=draws)


@admin_bp.route("/tenure-payout/draws/<int:draw_id>/verify")
@login_required
def verify_draw(draw_id: int):
    try:
        verified = run_coroutine_sync(_payout_manager().verify_draw(draw_id))
    except DrawNotFoundError as exc:
        return jsonify(error=str(exc)), 404
    return jsonify(draw_id=draw_id, verified=verified)


# ==================== USERS ====================

@admin_bp.route("/users")
@login_required
def users():
    limit = request.args.get("limit", None, type=int)
    return jsonify(users=run_coroutine_sync(_user_service().list_users(limit=limit)))


@admin_bp.route("/users/<user_id>/role", methods=["POST"])
@login_required
def update_user_role(user_id: str):
    role = str(_payload().get("role", "")).strip()
    try:
        run_coroutine_sync(_user_service().update_role(
            user_id, role, performed_by=current_user.username, **_client_info()
        ))
    except InvalidRoleError as exc:
        return jsonify(error=str(exc)), 400
    except UserNotFoundError as exc:
        return jsonify(error=str(exc)), 404
    except WriteError as exc:
        current_app.logger.error(f"Error updating role of {user_id}: {exc}")
        return jsonify(error="Failed to update role."), 500
    return jsonify(status="ok", user_id=user_id, role=role)


@admin_bp.route("/users/<user_id>", methods=["DELETE"])
@login_required
def delete_user(user_id: str):
    try:
        run_coroutine_sync(_user_service().delete_user(
            user_id, performed_by=current_user.username, **_client_info()
        ))
    except UserNotFoundError as exc:
        return jsonify(error=str(exc)), 404
    except WriteError as exc:
        current_app.logger.error(f"Error deleting user {user_id}: {exc}")
        return jsonify(error="Failed to delete user."), 500
    return jsonify(status="ok", user_id=user_id)


# ==================== REPORTS ====================

@admin_bp.route("/reports")
@login_required
def reports():
    report = run_coroutine_sync(_report_service().build_report())
    return jsonify(report.to_dict())


@admin_bp.route("/reports/export")
@login_required
def export_report():
    report = run_coroutine_sync(_report_service().build_report())
    return _csv_response(report.to_csv(), "financial_report.csv")


# ==================== AUDIT LOGS ====================

def _load_audit_logs() -> list:
    action = request.args.get("action", "all")
    search = request.args.get("q", "")
    try:
        return run_coroutine_sync(_audit_service().get_audit_logs(
            action=None if action == "all" else action,
            search=search,
        ))
    except DataFetchError as exc:
        current_app.logger.error(f"Error fetching audit logs: {exc}")
        return []


@admin_bp.route("/audit-logs")
@login_required
def audit_logs():
    return jsonify(logs=_load_audit_logs())


@admin_bp.route("/audit-logs/export")
@login_required
def export_audit_logs():
    return _csv_response(AuditService.export_csv(_load_audit_logs()), "audit_logs.csv")
