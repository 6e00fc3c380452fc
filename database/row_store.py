"""Single entry point to the tables the payout, report and user services use."""

from __future__ import annotations

from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence, TypeVar

from core import get_logger
from core.exceptions import DataFetchError
from database.repositories import (
    AccountRepository,
    AuditRepository,
    DrawRepository,
    MemberRepository,
    PaymentRepository,
    PayoutRepository,
    UserRepository,
)

logger = get_logger(__name__)

T = TypeVar("T")


async def soft_fetch(query: Awaitable[T], what: str, default: T) -> T:
    """Await a read query, falling back to ``default`` when it fails."""
    try:
        return await query
    except DataFetchError as exc:
        logger.warning(f"Failed to load {what}, continuing without it: {exc}")
        return default


class RowStore:
    """Thin facade over the repositories.

    Services depend on this object rather than on individual repositories so
    tests can hand them an in-memory replacement.
    """

    async def query_members(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await MemberRepository.query_members(limit=limit)

    async def count_members(self, created_since: Optional[str] = None) -> int:
        return await MemberRepository.count_members(created_since)

    async def query_users(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await UserRepository.query_users(limit=limit)

    async def upsert_role(self, user_id: str, role: str, updated_at: str) -> bool:
        return await UserRepository.upsert_role(user_id, role, updated_at)

    async def delete_user(self, user_id: str) -> bool:
        return await UserRepository.delete_user(user_id)

    async def query_accounts(self) -> List[Dict[str, Any]]:
        return await AccountRepository.query_accounts()

    async def query_payments(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await PaymentRepository.query_payments(status=status, limit=limit)

    async def insert_payouts(self, rows: Sequence[Mapping[str, Any]]) -> None:
        await PayoutRepository.insert_payouts(rows)

    async def insert_audit_entries(self, rows: Sequence[Mapping[str, Any]]) -> None:
        await AuditRepository.insert_audit_entries(rows)

    async def query_audit_log(self, action: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        return await AuditRepository.query_audit_log(action=action, limit=limit)

    async def count_distinct_users(self, action: str, since: str) -> int:
        return await AuditRepository.count_distinct_users(action, since)

    async def save_draw(self, **draw: Any) -> int:
        return await DrawRepository.save_draw(**draw)

    async def get_draw(self, draw_id: int) -> Optional[Dict[str, Any]]:
        return await DrawRepository.get_draw(draw_id)

    async def list_draws(self, limit: int = 50) -> List[Dict[str, Any]]:
        return await DrawRepository.list_draws(limit=limit)

    async def record_confirmation(
        self,
        draw_id: int,
        payouts: Sequence[Mapping[str, Any]],
        audit_entries: Sequence[Mapping[str, Any]],
        confirmed_at: str,
    ) -> None:
        await PayoutRepository.record_confirmation(draw_id, payouts, audit_entries, confirmed_at)
