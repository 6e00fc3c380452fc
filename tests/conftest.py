"""Pytest configuration and fixtures."""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from config import load_config
from core.constants import DrawStatus
from core.exceptions import DataFetchError, DrawAlreadyConfirmedError, DrawNotFoundError, WriteError
from database import close_db_pool, get_db_pool, init_db_pool, run_migrations
from database.base_repository import build_insert
from services import run_coroutine_sync, start_background_loop, stop_background_loop
from utils.timestamps import to_storage, utc_now

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "s3cret-pass"


def days_ago(days: int, now: datetime = NOW) -> str:
    return to_storage(now - timedelta(days=days))


class FakeRowStore:
    """In-memory stand-in for RowStore.

    Names listed in ``fail`` (members, accounts, payments, audit, users) make the
    matching reads raise DataFetchError.
    """

    def __init__(self, members=None, accounts=None, payments=None, fail=()):
        self.members = list(members or [])
        self.roles = {}
        self.accounts = list(accounts or [])
        self.payments = list(payments or [])
        self.payouts = []
        self.audit_log = []
        self.draws = {}
        self.fail = set(fail)
        self.fail_confirmation = False

    def _check(self, name):
        if name in self.fail:
            raise DataFetchError(f"{name} unavailable")

    async def query_members(self, limit=None):
        self._check("members")
        rows = sorted(self.members, key=lambda m: m["created_at"], reverse=True)
        return [dict(row) for row in rows][:limit]

    async def count_members(self, created_since=None):
        self._check("members")
        return sum(1 for m in self.members if created_since is None or m["created_at"] >= created_since)

    async def query_users(self, limit=None):
        self._check("users")
        emails = {a["id"]: a.get("email") for a in self.accounts}
        rows = [
            {
                "id": m["id"],
                "email": emails.get(m["id"]),
                "role": self.roles.get(m["id"], "user"),
                "created_at": m["created_at"],
            }
            for m in sorted(self.members, key=lambda m: m["created_at"], reverse=True)
        ]
        return rows[:limit]

    async def upsert_role(self, user_id, role, updated_at):
        if not any(m["id"] == user_id for m in self.members):
            return False
        self.roles[user_id] = role
        return True

    async def delete_user(self, user_id):
        remaining = [m for m in self.members if m["id"] != user_id]
        if len(remaining) == len(self.members):
            return False
        self.members = remaining
        self.accounts = [a for a in self.accounts if a["id"] != user_id]
        self.roles.pop(user_id, None)
        return True

    async def query_accounts(self):
        self._check("accounts")
        return [dict(row) for row in self.accounts]

    async def query_payments(self, status=None, limit=None):
        self._check("payments")
        return [dict(p) for p in self.payments if status is None or p["status"] == status][:limit]

    async def insert_payouts(self, rows):
        self.payouts.extend(dict(row) for row in rows)

    async def insert_audit_entries(self, rows):
        self.audit_log.extend(dict(row) for row in rows)

    async def query_audit_log(self, action=None, limit=100):
        self._check("audit")
        rows = [dict(r) for r in reversed(self.audit_log) if not action or r["action"] == action]
        return rows[:limit]

    async def count_distinct_users(self, action, since):
        self._check("audit")
        return len({
            r["user_id"] for r in self.audit_log
            if r["action"] == action and r["created_at"] >= since
        })

    async def save_draw(self, **draw):
        draw_id = len(self.draws) + 1
        self.draws[draw_id] = {
            "id": draw_id,
            "status": DrawStatus.PENDING.value,
            "confirmed_at": None,
            **draw,
        }
        return draw_id

    async def get_draw(self, draw_id):
        draw = self.draws.get(draw_id)
        return dict(draw) if draw is not None else None

    async def list_draws(self, limit=50):
        return [dict(d) for d in sorted(self.draws.values(), key=lambda d: d["id"], reverse=True)][:limit]

    async def record_confirmation(self, draw_id, payouts, audit_entries, confirmed_at):
        draw = self.draws.get(draw_id)
        if draw is None:
            raise DrawNotFoundError(f"Payout draw {draw_id} does not exist")
        if draw["status"] != DrawStatus.PENDING.value:
            raise DrawAlreadyConfirmedError(f"Payout draw {draw_id} is already confirmed")
        if self.fail_confirmation:
            raise WriteError("database is locked")
        draw.update(status=DrawStatus.CONFIRMED.value, confirmed_at=confirmed_at)
        self.payouts.extend(dict(row) for row in payouts)
        self.audit_log.extend(dict(row) for row in audit_entries)


def sample_rows(now: datetime = NOW):
    """Members, accounts and payments relative to ``now``.

    Five long-standing members (u1..u5) and one newcomer (u6). u1..u4 made a
    single paid payment of at least 300; u5 paid 250 twice and has no
    account; u6 defaulted.
    """
    members = [
        {"id": "u1", "created_at": days_ago(400, now)},
        {"id": "u2", "created_at": days_ago(500, now)},
        {"id": "u3", "created_at": days_ago(720, now)},
        {"id": "u4", "created_at": days_ago(365, now)},
        {"id": "u5", "created_at": days_ago(800, now)},
        {"id": "u6", "created_at": days_ago(30, now)},
    ]
    accounts = [
        {"id": "u1", "email": "ann@example.com"},
        {"id": "u2", "email": "bob@example.com"},
        {"id": "u3", "email": "cid@example.com"},
        {"id": "u4", "email": "dee@example.com"},
        {"id": "u6", "email": "fay@example.com"},
    ]
    payments = [
        {"id": 1, "user_id": "u1", "amount": 300, "status": "paid", "created_at": days_ago(10, now)},
        {"id": 2, "user_id": "u2", "amount": 350, "status": "paid", "created_at": days_ago(9, now)},
        {"id": 3, "user_id": "u3", "amount": 300, "status": "paid", "created_at": days_ago(8, now)},
        {"id": 4, "user_id": "u4", "amount": 1000, "status": "paid", "created_at": days_ago(7, now)},
        {"id": 5, "user_id": "u5", "amount": 250, "status": "paid", "created_at": days_ago(6, now)},
        {"id": 6, "user_id": "u5", "amount": 250, "status": "paid", "created_at": days_ago(5, now)},
        {"id": 7, "user_id": "u6", "amount": 500, "status": "defaulted", "created_at": days_ago(4, now)},
    ]
    return members, accounts, payments


@pytest.fixture
def store():
    members, accounts, payments = sample_rows()
    return FakeRowStore(members=members, accounts=accounts, payments=payments)


@pytest.fixture
def empty_store():
    return FakeRowStore()


async def insert_rows(table, rows):
    """Insert plain dict rows into ``table`` of the active pool."""
    if not rows:
        return
    columns = tuple(rows[0].keys())
    async with get_db_pool().connection() as conn:
        await conn.executemany(
            build_insert(table, columns),
            [tuple(row[c] for c in columns) for row in rows],
        )


async def seed_sample_rows(now: datetime = NOW):
    members, accounts, payments = sample_rows(now)
    await insert_rows("users", members)
    await insert_rows("accounts", accounts)
    await insert_rows("payments", payments)


@pytest.fixture
async def db_pool(tmp_path):
    """Migrated SQLite database in a temporary directory."""
    pool = await init_db_pool(str(tmp_path / "test.sqlite"), pool_size=2, busy_timeout_ms=5000)
    await run_migrations(pool)
    yield pool
    await close_db_pool()


def make_config(tmp_path, **overrides):
    settings = {
        "admin_username": ADMIN_USERNAME,
        "admin_password": ADMIN_PASSWORD,
        "environment": "development",
        "debug": False,
        "secret_key": "test-secret-key",
        "database_path": str(tmp_path / "web.sqlite"),
        "log_folder": str(tmp_path / "logs"),
        "rate_limit_enabled": False,
        "cache_type": "SimpleCache",
        "cache_redis_url": None,
    }
    settings.update(overrides)
    return dataclasses.replace(load_config(), **settings)


@pytest.fixture
def background_loop():
    start_background_loop()
    yield
    stop_background_loop()


@pytest.fixture
def app_factory(tmp_path, background_loop):
    """Build Flask apps over a migrated database on the background loop."""
    from web import create_app

    def factory(seed=True, **overrides):
        config = make_config(tmp_path, **overrides)
        pool = run_coroutine_sync(init_db_pool(config.database_path, pool_size=2, busy_timeout_ms=5000))
        run_coroutine_sync(run_migrations(pool))
        if seed:
            # Views use the wall clock
            run_coroutine_sync(seed_sample_rows(utc_now()))
        return create_app(config, testing=True)

    yield factory
    run_coroutine_sync(close_db_pool())


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post(
        "/admin/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client
