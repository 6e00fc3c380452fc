"""Database schema migrations."""

from __future__ import annotations

from .connection import OptimizedSQLitePool


SCHEMA_SQL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);",
    """
    CREATE TABLE IF NOT EXISTS user_roles (
        user_id TEXT PRIMARY KEY,
        role TEXT NOT NULL DEFAULT 'user',
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        amount NUMERIC NOT NULL DEFAULT 0,
        status TEXT NOT NULL,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_payments_status ON payments(status, user_id);",
    "CREATE INDEX IF NOT EXISTS idx_payments_created_at ON payments(created_at);",
    """
    CREATE TABLE IF NOT EXISTS payout_draws (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        seed TEXT NOT NULL,
        winners TEXT NOT NULL,
        candidates TEXT NOT NULL DEFAULT '[]',
        eligible_count INTEGER NOT NULL DEFAULT 0,
        prepaid_count INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        drawn_by TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        confirmed_at TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_payout_draws_status ON payout_draws(status, created_at);",
    """
    CREATE TABLE IF NOT EXISTS payouts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        amount NUMERIC NOT NULL,
        status TEXT NOT NULL DEFAULT 'payout',
        draw_id INTEGER,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(draw_id) REFERENCES payout_draws(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_payouts_user ON payouts(user_id);",
    """
    CREATE TABLE IF NOT EXISTS auth_audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,
        user_id TEXT,
        metadata TEXT,
        ip_address TEXT,
        user_agent TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_audit_action ON auth_audit_log(action, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_audit_created_at ON auth_audit_log(created_at);",
)


async def run_migrations(pool: OptimizedSQLitePool) -> None:
    async with pool.connection() as conn:
        await conn.execute("BEGIN")
        try:
            for statement in SCHEMA_SQL:
                await conn.execute(statement)
        except Exception:
            await conn.rollback()
            raise
        else:
            await conn.commit()
