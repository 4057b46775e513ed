"""Main bot entry point - lifecycle of the webhook bot."""
import asyncio
import logging
import sys
from typing import Optional

from database import Database
from messenger_bot.config import Config
from messenger_bot.container import ServiceContainer
from messenger_bot.handlers.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 600

_logging_configured = False


def _banner(title: str) -> None:
    logger.info("=" * 70)
    logger.info(title)
    logger.info("=" * 70)


def configure_logging(config: Config) -> None:
    """Configure logging (stdout plus an optional log file), once per process."""
    global _logging_configured
    if _logging_configured:
        return

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    # httpx logs full request URLs, which carry the page access token.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _logging_configured = True


class MessengerBot:
    """
    Main bot class - owns the database, the service container and the dispatcher.

    A prebuilt container can be injected (tests); otherwise `initialize` builds one.
    """

    def __init__(self, config: Config, container: Optional[ServiceContainer] = None):
        """Initialize the bot."""
        self.config = config
        self.container: Optional[ServiceContainer] = container
        self.dispatcher: Optional[Dispatcher] = Dispatcher(container) if container else None
        self.db: Optional[Database] = container.db if container else None
        self._owns_container = container is None
        self._running = False
        self._cleanup_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def initialize(self):
        """Initialize all bot components."""
        if self.container is not None:
            return

        _banner("🤖 USOS MESSENGER BOT - INITIALIZING")

        try:
            # Initialize database
            logger.info("📊 Initializing database...")
            self.db = Database()
            await self.db.connect()
            if self.config.db_auto_create:
                await self.db.create_tables()
            else:
                await self.db.require_schema()
            logger.info("✅ Database initialized")

            # Initialize service container
            logger.info("🔧 Initializing services...")
            self.container = await ServiceContainer.create(self.config, self.db)
            logger.info("✅ Services initialized")

            self.dispatcher = Dispatcher(self.container)
            logger.info("✅ Dispatcher initialized")

            _banner("✅ BOT INITIALIZATION COMPLETE")

        except Exception as e:
            logger.error(f"❌ Failed to initialize bot: {e}", exc_info=True)
            raise

    async def start(self):
        """Start background maintenance and display info."""
        if self._running:
            logger.warning("Bot is already running")
            return

        await self.initialize()

        _banner("🚀 STARTING BOT")

        self._running = True
        self._cleanup_task = asyncio.create_task(self._periodic_cleanup())

        logger.info(f"🌐 Public URL: {self.config.base_url}")
        logger.info(f"📡 Webhook path: {self.config.webhook_path}")
        logger.info(f"🔗 USOS API: {self.config.usos_api_url}")
        logger.info(f"⏱️  Broadcast interval: {self.config.broadcast_send_interval}s")

        _banner("✅ BOT IS RUNNING")

    async def _periodic_cleanup(self):
        while self._running:
            try:
                await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
                if self.container:
                    await self.container.login_flow_service.purge_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Periodic cleanup error: {e}")

    async def process_entry(self, entry) -> bool:
        if self.dispatcher is None:
            raise RuntimeError("bot is not initialized")
        return await self.dispatcher.process_entry(entry)

    async def stop(self):
        """Stop the bot and cleanup."""
        if not self._running:
            logger.warning("Bot is not running")
            return

        _banner("🛑 STOPPING BOT")

        try:
            self._running = False

            if self._cleanup_task:
                self._cleanup_task.cancel()
                self._cleanup_task = None

            if self._owns_container and self.container:
                logger.info("🧹 Cleaning up services...")
                await self.container.cleanup()
                logger.info("✅ Services cleaned up")

                logger.info("📊 Closing database...")
                await self.db.disconnect()
                logger.info("✅ Database closed")

            _banner("✅ BOT STOPPED")

        except Exception as e:
            logger.error(f"❌ Error stopping bot: {e}", exc_info=True)
            raise
