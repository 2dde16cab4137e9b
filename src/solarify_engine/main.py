"""Solarify Engine entry point and lifecycle orchestrator.

Startup sequence:
  config → logging → SQLite → catalog → engines → API server
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path

from solarify_engine import __version__
from solarify_engine.config.manager import ConfigManager
from solarify_engine.config.schema import AppConfig
from solarify_engine.db.engine import close_db, init_db
from solarify_engine.db.repository import Repository
from solarify_engine.logging.structured import setup_logging

logger = logging.getLogger(__name__)


class Application:
    """Wires the stores, engines and HTTP server together."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._running = False
        self._db = None
        self._server = None

    async def start(self) -> None:
        """Start all components in dependency order and serve until stopped."""
        logger.info("Starting Solarify Engine v%s", __version__)
        self._running = True

        # ── 1. Database ──────────────────────────────────────
        db = await init_db(self.config.db.path)
        self._db = db
        repo = Repository(db)
        logger.info("Sample and alert stores ready")

        # ── 2. Equipment catalog (optional) ──────────────────
        catalog = None
        if self.config.catalog.path:
            from solarify_engine.catalog import load_catalog

            catalog = load_catalog(Path(self.config.catalog.path))

        # ── 3. Engines ───────────────────────────────────────
        from solarify_engine.service import build_service

        service = build_service(self.config, repo, repo, catalog)

        # ── 4. API server ────────────────────────────────────
        from solarify_engine.api.app import create_app

        app = create_app(self.config, service, db)
        app.state.application = self

        import uvicorn

        uvi_config = uvicorn.Config(
            app,
            host=self.config.api.host,
            port=self.config.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(uvi_config)
        # Signals are routed through request_stop() by run().
        server.install_signal_handlers = lambda: None
        self._server = server

        logger.info(
            "API available at http://%s:%d/api",
            self.config.api.host,
            self.config.api.port,
        )
        await server.serve()

    async def stop(self) -> None:
        """Gracefully stop all components in reverse order."""
        if not self._running:
            return

        logger.info("Shutting down Solarify Engine")
        self._running = False

        if self._server is not None:
            self._server.should_exit = True
            self._server = None

        if self._db is not None:
            await close_db(self._db)
            self._db = None
        logger.info("Shutdown complete")

    def request_stop(self) -> None:
        """Signal handler: drain on the first signal, force exit on the second."""
        if self._server is None:
            return
        if self._server.should_exit:
            logger.warning("Second stop signal received; forcing exit")
            self._server.force_exit = True
        else:
            logger.info("Stop signal received; draining requests")
            self._server.should_exit = True

    async def run(self) -> None:
        """Serve until SIGINT or SIGTERM, then shut down cleanly."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows event loops; Ctrl+C then raises KeyboardInterrupt.
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.request_stop)
        try:
            await self.start()
        finally:
            await self.stop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(sig)


def main() -> None:
    """Entry point for the application."""
    config = ConfigManager(Path("config.defaults.yaml"), Path("config.yaml")).load()
    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(Application(config).run())


if __name__ == "__main__":
    main()
