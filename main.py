"""Application entry point."""

from __future__ import annotations

import logging
from pathlib import Path

from config import load_config
from core import setup_logger
from core.app_initializer import ApplicationInitializer
from services import run_coroutine_sync, start_background_loop, stop_background_loop


def main() -> None:
    """Start the async loop, prepare the database and serve the admin API."""
    config = load_config()
    logger = setup_logger(
        name="",
        level=logging.DEBUG if config.debug else logging.INFO,
        log_file=str(Path(config.log_folder) / "app.log"),
        colored=True,
    )

    start_background_loop()
    initializer = ApplicationInitializer(config)
    app = run_coroutine_sync(initializer.initialize())
    try:
        app.run(host=config.web_host, port=config.web_port, debug=config.debug, use_reloader=False)
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    finally:
        run_coroutine_sync(initializer.shutdown())
        stop_background_loop()


if __name__ == "__main__":
    main()
