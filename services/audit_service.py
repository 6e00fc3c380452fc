"""Audit log service: recording actions and browsing the log."""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Dict, List, Mapping, Optional

from core import AuditAction, ReportDefaults, get_logger
from database.row_store import RowStore, soft_fetch
from utils.timestamps import to_storage, utc_now

logger = get_logger(__name__)

ACTION_LABELS = {
    AuditAction.LOGIN.value: "Login",
    AuditAction.LOGIN_FAILED.value: "Login Failed",
    AuditAction.LOGOUT.value: "Logout",
    AuditAction.SIGNUP.value: "Sign Up",
    AuditAction.USER_DELETED.value: "User Deleted",
    AuditAction.ROLE_UPDATED.value: "Role Updated",
    AuditAction.PAYOUT.value: "Payout",
}

CSV_HEADERS = ("timestamp", "user", "action", "ip", "details")


def action_label(action: str) -> str:
    return ACTION_LABELS.get(action, action)


class AuditService:
    """Service for working with the audit log."""

    def __init__(self, store: Optional[RowStore] = None) -> None:
        self.store = store or RowStore()

    async def log_action(
        self,
        action: str,
        user_id: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Append one entry to the audit log.

        Args:
            action: Action name (login, logout, payout, ...)
            user_id: Member the action concerns
            metadata: JSON-serialisable details
            ip_address: Client address
            user_agent: Client user agent
        """
        await self.store.insert_audit_entries([{
            "action": action,
            "user_id": user_id,
            "metadata": dict(metadata) if metadata is not None else None,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "created_at": to_storage(utc_now()),
        }])

    async def get_audit_logs(
        self,
        action: Optional[str] = None,
        search: str = "",
        limit: int = ReportDefaults.AUDIT_LOG_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Latest audit entries with the member email resolved.

        ``search`` is matched case-insensitively against the email and the
        action name after the entries are loaded.
        """
        logs = await self.store.query_audit_log(action=action or None, limit=limit)
        accounts = await soft_fetch(self.store.query_accounts(), "account directory", [])
        emails = {row["id"]: row.get("email") for row in accounts}

        for log in logs:
            log["user_email"] = emails.get(log.get("user_id")) or ReportDefaults.UNKNOWN_EMAIL
            log["action_label"] = action_label(log.get("action") or "")

        query = search.strip().lower()
        if not query:
            return logs
        return [
            log for log in logs
            if query in (log["user_email"] or "").lower() or query in (log.get("action") or "").lower()
        ]

    @staticmethod
    def export_csv(logs: List[Mapping[str, Any]]) -> str:
        buffer = io.StringIO()
        buffer.write(",".join(CSV_HEADERS) + "\n")
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for log in logs:
            metadata = log.get("metadata")
            writer.writerow([
                log.get("created_at") or "",
                log.get("user_email") or "",
                log.get("action") or "",
                log.get("ip_address") or "",
                json.dumps(metadata) if metadata else "",
            ])
        return buffer.getvalue()
