"""Health check blueprint."""

from __future__ import annotations

from flask import Blueprint, jsonify

from core.exceptions import ApplicationError
from database.base_repository import BaseRepository
from services import run_coroutine_sync


health_bp = Blueprint("health", __name__)


@health_bp.route("/health")
def health_check():
    try:
        run_coroutine_sync(BaseRepository.fetch_value("SELECT 1"))
    except (ApplicationError, RuntimeError) as exc:
        return jsonify(status="degraded", database=str(exc)), 503
    return jsonify(status="ok", database="ok")
