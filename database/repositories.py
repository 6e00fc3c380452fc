"""Row-store access for members, roles, payments, payouts, draws and the audit log."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import aiosqlite

from core.constants import AuditAction, DrawStatus, UserRole
from core.exceptions import DrawAlreadyConfirmedError, DrawNotFoundError, WriteError
from database.base_repository import BaseRepository, build_insert
from database.connection import get_db_pool

PAYOUT_COLUMNS = ("user_id", "amount", "status", "draw_id", "created_at")
AUDIT_COLUMNS = ("action", "user_id", "metadata", "ip_address", "user_agent", "created_at")


def _payout_record(row: Mapping[str, Any]) -> tuple:
    return tuple(row.get(column) for column in PAYOUT_COLUMNS)


def _audit_record(row: Mapping[str, Any]) -> tuple:
    metadata = row.get("metadata")
    return (
        row["action"],
        row.get("user_id"),
        json.dumps(metadata) if metadata is not None else None,
        row.get("ip_address"),
        row.get("user_agent"),
        row.get("created_at"),
    )


def _decode_metadata(row: Dict[str, Any]) -> Dict[str, Any]:
    raw = row.get("metadata")
    if raw:
        try:
            row["metadata"] = json.loads(raw)
        except (TypeError, ValueError):
            # Rows written by other tools may hold plain text
            pass
    return row


def _decode_draw(row: Dict[str, Any]) -> Dict[str, Any]:
    row["winners"] = json.loads(row["winners"])
    row["candidates"] = json.loads(row.get("candidates") or "[]")
    return row


class MemberRepository(BaseRepository):
    """Read access to member rows (``users`` table)."""

    @staticmethod
    async def query_members(limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = "SELECT id, created_at FROM users ORDER BY created_at DESC"
        params: Sequence[Any] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return await BaseRepository.fetch_all(query, params)

    @staticmethod
    async def count_members(created_since: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM users"
        params: Sequence[Any] = ()
        if created_since is not None:
            query += " WHERE created_at >= ?"
            params = (created_since,)
        return await BaseRepository.fetch_value(query, params) or 0


class UserRepository(BaseRepository):
    """Member accounts as shown on the admin users page.

    Roles live in ``user_roles``; a member without a row there is a plain
    user.
    """

    @staticmethod
    async def query_users(limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = """
            SELECT u.id, a.email, COALESCE(r.role, ?) AS role, u.created_at,
                   (SELECT MAX(l.created_at) FROM auth_audit_log l
                    WHERE l.user_id = u.id AND l.action = ?) AS last_sign_in_at
            FROM users u
            LEFT JOIN accounts a ON a.id = u.id
            LEFT JOIN user_roles r ON r.user_id = u.id
            ORDER BY u.created_at DESC, u.id
        """
        params: List[Any] = [UserRole.USER.value, AuditAction.LOGIN.value]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return await BaseRepository.fetch_all(query, params)

    @staticmethod
    async def upsert_role(user_id: str, role: str, updated_at: str) -> bool:
        """Set the role of an existing member.

        Returns:
            False when the member does not exist; nothing is written then
        """
        pool = get_db_pool()
        async with pool.connection() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
                cursor = await conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,))
                if await cursor.fetchone() is None:
                    await conn.rollback()
                    return False
                await conn.execute(
                    """
                    INSERT INTO user_roles (user_id, role, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET role = excluded.role, updated_at = excluded.updated_at
                    """,
                    (user_id, role, updated_at),
                )
                await conn.commit()
            except aiosqlite.Error as exc:
                if conn.in_transaction:
                    await conn.rollback()
                raise WriteError(str(exc)) from exc
        return True

    @staticmethod
    async def delete_user(user_id: str) -> bool:
        """Delete a member with its account and role.

        Payments and payouts are kept as financial history.

        Returns:
            False when the member does not exist
        """
        pool = get_db_pool()
        async with pool.connection() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
                cursor = await conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
                if cursor.rowcount != 1:
                    await conn.rollback()
                    return False
                await conn.execute("DELETE FROM user_roles WHERE user_id = ?", (user_id,))
                await conn.execute("DELETE FROM accounts WHERE id = ?", (user_id,))
                await conn.commit()
            except aiosqlite.Error as exc:
                if conn.in_transaction:
                    await conn.rollback()
                raise WriteError(str(exc)) from exc
        return True


class AccountRepository(BaseRepository):
    """Directory of accounts mapping member ids to email addresses."""

    @staticmethod
    async def query_accounts() -> List[Dict[str, Any]]:
        return await BaseRepository.fetch_all("SELECT id, email FROM accounts")


class PaymentRepository(BaseRepository):
    """Read access to payment rows."""

    @staticmethod
    async def query_payments(
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = "SELECT id, user_id, amount, status, created_at FROM payments"
        params: List[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return await BaseRepository.fetch_all(query, params)


class AuditRepository(BaseRepository):
    """Append-only audit log (``auth_audit_log`` table)."""

    @staticmethod
    async def insert_audit_entries(rows: Iterable[Mapping[str, Any]]) -> None:
        await BaseRepository.batch_insert(
            "auth_audit_log", AUDIT_COLUMNS, [_audit_record(row) for row in rows]
        )

    @staticmethod
    async def query_audit_log(
        action: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        query = "SELECT * FROM auth_audit_log"
        params: List[Any] = []
        if action:
            query += " WHERE action = ?"
            params.append(action)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        rows = await BaseRepository.fetch_all(query, params)
        return [_decode_metadata(row) for row in rows]

    @staticmethod
    async def count_distinct_users(action: str, since: str) -> int:
        return await BaseRepository.fetch_value(
            "SELECT COUNT(DISTINCT user_id) FROM auth_audit_log WHERE action = ? AND created_at >= ?",
            (action, since),
        ) or 0


class DrawRepository(BaseRepository):
    """Persisted payout draws, one row per winner selection."""

    @staticmethod
    async def save_draw(
        seed: str,
        winners: Sequence[Mapping[str, Any]],
        candidates: Sequence[Mapping[str, Any]],
        eligible_count: int,
        prepaid_count: int,
        drawn_by: Optional[str],
        created_at: str,
    ) -> int:
        return await BaseRepository.execute(
            """
            INSERT INTO payout_draws
                (seed, winners, candidates, eligible_count, prepaid_count, status, drawn_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                seed,
                json.dumps([dict(w) for w in winners]),
                json.dumps([dict(c) for c in candidates]),
                eligible_count,
                prepaid_count,
                DrawStatus.PENDING.value,
                drawn_by,
                created_at,
            ),
        )

    @staticmethod
    async def get_draw(draw_id: int) -> Optional[Dict[str, Any]]:
        row = await BaseRepository.fetch_one("SELECT * FROM payout_draws WHERE id = ?", (draw_id,))
        if row is not None:
            _decode_draw(row)
        return row

    @staticmethod
    async def list_draws(limit: int = 50) -> List[Dict[str, Any]]:
        rows = await BaseRepository.fetch_all(
            "SELECT * FROM payout_draws ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [_decode_draw(row) for row in rows]


class PayoutRepository(BaseRepository):
    """Append-only payout rows."""

    @staticmethod
    async def insert_payouts(rows: Iterable[Mapping[str, Any]]) -> None:
        await BaseRepository.batch_insert(
            "payouts", PAYOUT_COLUMNS, [_payout_record(row) for row in rows]
        )

    @staticmethod
    async def record_confirmation(
        draw_id: int,
        payouts: Sequence[Mapping[str, Any]],
        audit_entries: Sequence[Mapping[str, Any]],
        confirmed_at: str,
    ) -> None:
        """Mark a draw confirmed and write its payouts and audit rows atomically.

        Raises:
            DrawNotFoundError: No draw with this id
            DrawAlreadyConfirmedError: The draw was confirmed before
            WriteError: Any insert failed; nothing is written
        """
        pool = get_db_pool()
        async with pool.connection() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
                cursor = await conn.execute(
                    "UPDATE payout_draws SET status = ?, confirmed_at = ? WHERE id = ? AND status = ?",
                    (DrawStatus.CONFIRMED.value, confirmed_at, draw_id, DrawStatus.PENDING.value),
                )
                if cursor.rowcount != 1:
                    await conn.rollback()
                    exists = await conn.execute("SELECT 1 FROM payout_draws WHERE id = ?", (draw_id,))
                    if await exists.fetchone() is None:
                        raise DrawNotFoundError(f"Payout draw {draw_id} does not exist")
                    raise DrawAlreadyConfirmedError(f"Payout draw {draw_id} is already confirmed")
                await conn.executemany(
                    build_insert("payouts", PAYOUT_COLUMNS),
                    [_payout_record(row) for row in payouts],
                )
                await conn.executemany(
                    build_insert("auth_audit_log", AUDIT_COLUMNS),
                    [_audit_record(row) for row in audit_entries],
                )
                await conn.commit()
            except aiosqlite.Error as exc:
                if conn.in_transaction:
                    await conn.rollback()
                raise WriteError(str(exc)) from exc
