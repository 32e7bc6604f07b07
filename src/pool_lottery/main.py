#!/usr/bin/env python3
"""
Pool Lottery Application

Main entry point: wires the treasury, engine, heartbeat operator and web
server together and runs until a shutdown signal arrives.
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env before the logger and config read them
load_dotenv(Path.cwd() / ".env")

from pool_lottery.lottery.engine import LotteryEngine
from pool_lottery.lottery.operator import PassiveOperator
from pool_lottery.treasury.vault import Vault
from pool_lottery.utils.config import load_config
from pool_lottery.utils.logger import get_logger
from pool_lottery.web_server import LotteryWebServer

logger = get_logger(__name__)


class LotteryApp:
    """Pool lottery application.

    Responsible for initializing and orchestrating the treasury, the engine,
    the heartbeat operator and the FastAPI web server. Handles graceful
    shutdown and logs a startup summary for diagnostics.
    """

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        self.vault = None
        self.engine = None
        self.operator = None
        self.web_server = None
        self.running = True

        logger.info("Pool Lottery Application initialized")

    def _display_config_summary(self):
        """Display key configuration options for diagnostics."""
        lottery_config = self.config.get('lottery', {})
        operator_config = self.config.get('operator', {})
        treasury_config = self.config.get('treasury', {})
        server_config = self.config.get('server', {})

        logger.info("=" * 60)
        logger.info("CONFIGURATION SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Min stake: {lottery_config.get('min_stake', 1)}")
        logger.info(f"Max rounds per entry: {lottery_config.get('max_rounds_per_entry', 100)}")
        logger.info(f"Operator enabled: {operator_config.get('enabled', True)}")
        logger.info(f"Check interval: {operator_config.get('check_interval', 5)}s")
        logger.info(f"Faucet enabled: {treasury_config.get('faucet_enabled', False)}")
        logger.info(f"Server: {server_config.get('host', '0.0.0.0')}:{server_config.get('port', 6080)}")
        logger.info(f"Signed requests required: {server_config.get('auth_required', True)}")
        logger.info("=" * 60)

    def initialize(self):
        """Create the treasury, engine, operator and web server instances."""
        logger.info("Initializing Pool Lottery Application")
        self._display_config_summary()

        treasury_config = self.config.get('treasury', {})
        self.vault = Vault(treasury_config.get('initial_balances') or {})

        self.engine = LotteryEngine(self.vault, config=self.config)
        self.engine.initialize()

        if self.config.get('operator', {}).get('enabled', True):
            self.operator = PassiveOperator(self.engine, self.config)

        self.web_server = LotteryWebServer(self.config, self.engine, self.vault, self.operator)
        logger.info("Application initialization completed")

    async def start(self):
        """Start services and run until a shutdown signal is received."""
        try:
            self.initialize()

            if self.operator:
                await self.operator.start()

            server_host = self.config.get('server', {}).get('host', '0.0.0.0')
            server_port = int(self.config.get('server', {}).get('port', 6080))

            logger.info(f"Starting web server on {server_host}:{server_port}...")
            server_task = asyncio.create_task(self.web_server.start(host=server_host, port=server_port))
            # Give the server a moment to attempt bind; a failed bind finishes the task
            await asyncio.sleep(0.2)
            if server_task.done() and server_task.exception():
                raise server_task.exception()

            self._display_startup_summary()

            while self.running and not server_task.done():
                await asyncio.sleep(1)

            logger.info("Shutdown signal received, stopping application...")
        finally:
            await self.stop()

    async def stop(self):
        """Stop all services."""
        logger.info("Stopping Pool Lottery Application")
        self.running = False

        if self.operator:
            try:
                await self.operator.stop()
                logger.info("Operator stopped")
            except Exception as e:
                logger.error(f"Error stopping operator: {e}")

        if self.web_server:
            try:
                await self.web_server.stop()
                logger.info("Web server stopped")
            except Exception as e:
                logger.error(f"Error stopping web server: {e}")

        logger.info("Pool Lottery Application stopped")

    def _display_startup_summary(self):
        server_config = self.config.get('server', {})
        host = server_config.get('host', '0.0.0.0')
        port = server_config.get('port', 6080)

        logger.info("=" * 60)
        logger.info("POOL LOTTERY STARTED")
        logger.info("=" * 60)
        if self.operator:
            logger.info(f"Operator Address: {self.operator.address}")
        logger.info(f"Current Round: #{self.engine.get_current_game_status().round}")
        logger.info(f"Vault Balance: {self.engine.vault_balance()}")
        logger.info(f"REST API: http://{host}:{port}/api/")
        logger.info(f"WebSocket: ws://{host}:{port}/ws/lottery")
        logger.info("=" * 60)

    def _handle_signal(self, signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.running = False


async def main():
    """Main entry point for the Pool Lottery Application"""
    app = LotteryApp()

    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception:
        logger.exception("Application failed")
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
