"""Integration tests for the SQLite repositories."""

import json

import pytest

from conftest import NOW, days_ago, insert_rows, seed_sample_rows
from core.exceptions import (
    ConnectionPoolError,
    DataFetchError,
    DrawAlreadyConfirmedError,
    DrawNotFoundError,
    WriteError,
)
from database import OptimizedSQLitePool
from database.base_repository import BaseRepository
from database.row_store import RowStore, soft_fetch
from services.payout_service import PayoutManager
from services.reports import ReportService
from utils.timestamps import to_storage

pytestmark = pytest.mark.integration


def payout(user_id, draw_id, amount=300):
    return {"user_id": user_id, "amount": amount, "status": "payout",
            "draw_id": draw_id, "created_at": to_storage(NOW)}


def audit_entry(user_id, amount=300):
    return {"action": "payout", "user_id": user_id, "metadata": {"amount": amount},
            "ip_address": "127.0.0.1", "user_agent": "pytest", "created_at": to_storage(NOW)}


async def save_draw(rows, winners=("u1", "u2")):
    return await rows.save_draw(
        seed="ab" * 32,
        winners=[{"user_id": w, "email": f"{w}@example.com", "prepaid": True} for w in winners],
        candidates=[],
        eligible_count=len(winners),
        prepaid_count=len(winners),
        drawn_by="admin",
        created_at=to_storage(NOW),
    )


async def count(table):
    return await BaseRepository.fetch_value(f"SELECT COUNT(*) FROM {table}")


def test_pool_rejects_empty_size():
    with pytest.raises(ConnectionPoolError):
        OptimizedSQLitePool("unused.sqlite", pool_size=0)


async def test_member_and_payment_queries(db_pool):
    await seed_sample_rows()
    rows = RowStore()

    members = await rows.query_members()
    assert [m["id"] for m in members][:2] == ["u6", "u4"]
    assert len(await rows.query_members(limit=3)) == 3
    assert await rows.count_members() == 6
    assert await rows.count_members(created_since=days_ago(450)) == 3

    paid = await rows.query_payments(status="paid")
    assert len(paid) == 6
    assert all(p["status"] == "paid" for p in paid)
    assert len(await rows.query_payments(limit=2)) == 2


async def test_audit_metadata_roundtrip(db_pool):
    rows = RowStore()
    await rows.insert_audit_entries([audit_entry("u1"), {**audit_entry("u2"), "action": "login"}])

    logs = await rows.query_audit_log(action="payout")
    assert len(logs) == 1
    assert logs[0]["metadata"] == {"amount": 300}
    assert await rows.count_distinct_users("login", days_ago(1)) == 1


async def test_plain_text_metadata_is_kept(db_pool):
    await insert_rows("auth_audit_log", [
        {"action": "login", "user_id": "u1", "metadata": "legacy note", "created_at": to_storage(NOW)},
    ])
    logs = await RowStore().query_audit_log()
    assert logs[0]["metadata"] == "legacy note"


async def test_draw_roundtrip(db_pool):
    rows = RowStore()
    draw_id = await save_draw(rows)

    draw = await rows.get_draw(draw_id)
    assert draw["status"] == "pending"
    assert draw["winners"][0] == {"user_id": "u1", "email": "u1@example.com", "prepaid": True}
    assert draw["candidates"] == []
    assert draw["confirmed_at"] is None
    assert await rows.get_draw(draw_id + 1) is None
    assert [d["id"] for d in await rows.list_draws()] == [draw_id]


async def test_record_confirmation_writes_everything(db_pool):
    rows = RowStore()
    draw_id = await save_draw(rows)

    await rows.record_confirmation(
        draw_id,
        [payout("u1", draw_id), payout("u2", draw_id)],
        [audit_entry("u1"), audit_entry("u2")],
        to_storage(NOW),
    )

    assert await count("payouts") == 2
    assert await count("auth_audit_log") == 2
    draw = await rows.get_draw(draw_id)
    assert draw["status"] == "confirmed"
    assert draw["confirmed_at"] == to_storage(NOW)


async def test_record_confirmation_is_atomic(db_pool):
    rows = RowStore()
    draw_id = await save_draw(rows)
    broken = {**payout("u2", draw_id), "user_id": None}

    with pytest.raises(WriteError):
        await rows.record_confirmation(
            draw_id,
            [payout("u1", draw_id), broken],
            [audit_entry("u1"), audit_entry("u2")],
            to_storage(NOW),
        )

    assert await count("payouts") == 0
    assert await count("auth_audit_log") == 0
    assert (await rows.get_draw(draw_id))["status"] == "pending"


async def test_record_confirmation_only_once(db_pool):
    rows = RowStore()
    draw_id = await save_draw(rows)
    args = ([payout("u1", draw_id)], [audit_entry("u1")], to_storage(NOW))
    await rows.record_confirmation(draw_id, *args)

    with pytest.raises(DrawAlreadyConfirmedError):
        await rows.record_confirmation(draw_id, *args)
    with pytest.raises(DrawNotFoundError):
        await rows.record_confirmation(draw_id + 1, *args)
    assert await count("payouts") == 1


async def test_batch_insert_rolls_back_on_error(db_pool):
    with pytest.raises(WriteError):
        await RowStore().insert_payouts([payout("u1", None), payout(None, None)])
    assert await count("payouts") == 0


async def test_read_errors_become_data_fetch_errors(db_pool):
    with pytest.raises(DataFetchError):
        await BaseRepository.fetch_all("SELECT * FROM missing_table")
    assert await soft_fetch(BaseRepository.fetch_all("SELECT * FROM missing_table"), "missing", []) == []


async def test_payout_flow_end_to_end(db_pool):
    await seed_sample_rows()
    manager = PayoutManager()

    result = await manager.run_draw(drawn_by="admin", now=NOW)
    assert result.eligible_count == 5
    assert result.prepaid_count == 4
    assert await manager.verify_draw(result.draw_id)

    assert await manager.confirm_payouts(result.draw_id, admin_username="admin") == 3
    payouts = await BaseRepository.fetch_all("SELECT user_id, amount, status, draw_id FROM payouts")
    assert sorted(p["user_id"] for p in payouts) == sorted(w.user_id for w in result.winners)
    assert {(p["amount"], p["status"], p["draw_id"]) for p in payouts} == {(300, "payout", result.draw_id)}

    raw = await BaseRepository.fetch_all("SELECT metadata FROM auth_audit_log WHERE action = 'payout'")
    assert [json.loads(r["metadata"]) for r in raw] == [{"amount": 300}] * 3

    with pytest.raises(DrawAlreadyConfirmedError):
        await manager.confirm_payouts(result.draw_id)


async def test_report_over_database(db_pool):
    await seed_sample_rows()
    report = await ReportService().build_report(NOW)

    assert report.total_revenue == 2450
    assert report.active_members == 5
    assert report.defaulted_members == 1
    assert report.buckets[11] == 5


async def test_users_join_accounts_roles_and_last_login(db_pool):
    await seed_sample_rows()
    rows = RowStore()
    await rows.insert_audit_entries([
        {"action": "login", "user_id": "u1", "created_at": days_ago(3)},
        {"action": "login", "user_id": "u1", "created_at": days_ago(1)},
        {"action": "logout", "user_id": "u1", "created_at": to_storage(NOW)},
    ])

    assert await rows.upsert_role("u1", "admin", to_storage(NOW)) is True
    users = {u["id"]: u for u in await rows.query_users()}

    assert users["u1"]["role"] == "admin"
    assert users["u1"]["email"] == "ann@example.com"
    assert users["u1"]["last_sign_in_at"] == days_ago(1)
    assert users["u2"]["role"] == "user"
    assert users["u2"]["last_sign_in_at"] is None
    assert users["u5"]["email"] is None
    assert [u["id"] for u in await rows.query_users(limit=2)] == ["u6", "u4"]


async def test_upsert_role_overwrites_and_ignores_missing_users(db_pool):
    await seed_sample_rows()
    rows = RowStore()

    await rows.upsert_role("u2", "admin", to_storage(NOW))
    await rows.upsert_role("u2", "user", to_storage(NOW))

    assert await rows.upsert_role("ghost", "admin", to_storage(NOW)) is False
    assert await BaseRepository.fetch_all("SELECT user_id, role FROM user_roles") == [
        {"user_id": "u2", "role": "user"},
    ]


async def test_delete_user_removes_account_and_role_but_keeps_payments(db_pool):
    await seed_sample_rows()
    rows = RowStore()
    await rows.upsert_role("u6", "admin", to_storage(NOW))

    assert await rows.delete_user("u6") is True
    assert await rows.delete_user("u6") is False

    assert "u6" not in {u["id"] for u in await rows.query_users()}
    assert await BaseRepository.fetch_value("SELECT COUNT(*) FROM accounts WHERE id = 'u6'") == 0
    assert await BaseRepository.fetch_value("SELECT COUNT(*) FROM user_roles WHERE user_id = 'u6'") == 0
    assert await BaseRepository.fetch_value("SELECT COUNT(*) FROM payments WHERE user_id = 'u6'") == 1


async def test_malformed_member_rows_do_not_break_the_draw(db_pool):
    await insert_rows("users", [
        {"id": "good", "created_at": days_ago(400)},
        {"id": "bad", "created_at": "not-a-date"},
    ])
    await insert_rows("payments", [
        {"user_id": "good", "amount": 300, "status": "paid", "created_at": days_ago(1)},
        {"user_id": "bad", "amount": 300, "status": "paid", "created_at": days_ago(1)},
    ])

    eligible = await PayoutManager().load_eligible(NOW)
    report = await ReportService().build_report(NOW)

    assert [m.user_id for m in eligible] == ["good"]
    assert sum(report.buckets) == 1
