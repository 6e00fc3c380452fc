"""Application initialization orchestrator."""

from __future__ import annotations

from typing import Optional

from flask import Flask

from config import Config, load_config
from core.logger import get_logger
from database import close_db_pool, init_db_pool, run_migrations

logger = get_logger(__name__)


class ApplicationInitializer:
    """Orchestrates database setup, app creation and shutdown."""

    def __init__(self, config: Optional[Config] = None, testing: bool = False):
        self.config = config or load_config()
        self.testing = testing
        self.db_pool = None
        self.app: Optional[Flask] = None

    async def initialize(self) -> Flask:
        """Open the database pool, apply the schema and build the Flask app.

        Must run on the loop that later serves the app's coroutines.
        """
        await self._init_database()

        # Imported here: the web package pulls in every service module
        from web import create_app

        self.app = create_app(self.config, testing=self.testing)
        logger.info("Admin API ready")
        return self.app

    async def _init_database(self) -> None:
        logger.info(f"Opening database {self.config.database_path}")
        self.db_pool = await init_db_pool(
            self.config.database_path,
            pool_size=self.config.db_pool_size,
            busy_timeout_ms=self.config.db_busy_timeout,
        )
        await run_migrations(self.db_pool)
        logger.info("Database schema is up to date")

    async def shutdown(self) -> None:
        await close_db_pool()
        self.db_pool = None
        logger.info("Database pool closed")
