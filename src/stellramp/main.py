"""Combined entry point: REST API and Telegram bot in one process."""

import asyncio
import logging
import signal

import uvicorn
from dotenv import load_dotenv

from stellramp.anchor.service import get_ramp_service
from stellramp.api.app import create_app
from stellramp.bot.bot import create_bot, start_polling
from stellramp.config import get_settings
from stellramp.ledger.database import close_db, init_db
from stellramp.utils.logs import configure_logging

logger = logging.getLogger(__name__)


class Application:
    """Runs the API server and (when a token is set) the bot until shutdown."""

    def __init__(self):
        self.settings = get_settings()
        self.bot = None
        self.dp = None
        self._stop = asyncio.Event()

    async def preflight(self) -> None:
        """Create tables and report anchor configuration before serving."""
        await init_db()

        service = get_ramp_service()
        client = service.ledger_client
        logger.info(f"Ledger client: {type(client).__name__} on {client.network_name}")
        logger.info(f"Treasury: {self.settings.anchor_treasury_public}")

        if not self.settings.anchor_distribution_secret:
            logger.warning("ANCHOR_DISTRIBUTION_SECRET not set - deposits use faucet funding")
        if not client.is_testnet and not self.settings.anchor_distribution_secret:
            logger.error("Public network without a distribution account: deposits will fail")

        stuck = await service.in_flight_counts()
        if stuck["deposits"] or stuck["withdrawals"]:
            logger.warning(
                f"Records left in processing by a previous run: "
                f"{stuck['deposits']} deposits, {stuck['withdrawals']} withdrawals"
            )

    async def run(self) -> None:
        """Start services and block until stop() is called."""
        configure_logging(self.settings.debug)
        logger.info(f"Starting Stellramp ({self.settings.environment})")

        await self.preflight()

        services = {"api": asyncio.create_task(self._serve_api())}
        if self.settings.telegram_bot_token:
            self.bot, self.dp = create_bot()
            services["bot"] = asyncio.create_task(self._serve_bot())
        else:
            logger.warning("TELEGRAM_BOT_TOKEN not set - bot disabled")

        await self._stop.wait()

        for name, task in services.items():
            task.cancel()
            logger.info(f"Stopping {name}")
        await asyncio.gather(*services.values(), return_exceptions=True)
        await self._cleanup()

    async def _serve_api(self) -> None:
        config = uvicorn.Config(
            create_app(),
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level="debug" if self.settings.debug else "info",
        )
        logger.info(f"API listening on {self.settings.api_host}:{self.settings.api_port}")
        try:
            await uvicorn.Server(config).serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _serve_bot(self) -> None:
        try:
            await start_polling(self.bot, self.dp)
        except asyncio.CancelledError:
            logger.info("Bot polling cancelled")
        except Exception as e:
            logger.error(f"Bot error: {e}")
            raise

    async def _cleanup(self) -> None:
        if self.bot:
            await self.bot.session.close()
        await close_db()
        logger.info("Shutdown complete")

    def stop(self) -> None:
        logger.info("Shutdown requested")
        self._stop.set()


def main():
    """Run API and bot until SIGINT/SIGTERM."""
    load_dotenv()
    app = Application()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.stop)

    try:
        loop.run_until_complete(app.run())
    finally:
        loop.close()


if __name__ == "__main__":
    main()
