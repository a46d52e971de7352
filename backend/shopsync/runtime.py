"""Entrypoint for running the offline engine headless, without the HTTP API."""

from __future__ import annotations

import asyncio
import logging
import signal

from shopsync.config import Settings, get_settings
from shopsync.observability.logging import configure_logging
from shopsync.observability.otel import configure_otel
from shopsync.orchestrator import OfflineOrchestrator, build_orchestrator


logger = logging.getLogger(__name__)


class SyncAgent:
    """Keeps an orchestrator running until asked to stop."""

    def __init__(self, orchestrator: OfflineOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._shutdown_event = asyncio.Event()

    def request_shutdown(self) -> None:
        """Trigger graceful shutdown."""
        self._shutdown_event.set()

    async def run(self) -> None:
        await self.orchestrator.start()
        logger.info("sync_agent_running", extra={"status": self.orchestrator.status.model_dump(mode="json")})
        try:
            await self._shutdown_event.wait()
        finally:
            await self.orchestrator.stop()
            logger.info("sync_agent_stopped")


async def run_agent(settings: Settings | None = None) -> None:
    """Run the sync agent until interrupted."""
    resolved_settings = settings or get_settings()
    agent = SyncAgent(build_orchestrator(resolved_settings))
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, agent.request_shutdown)
        except NotImplementedError:
            pass

    await agent.run()


def main() -> None:
    """CLI entrypoint for the headless sync agent."""
    settings = get_settings()
    configure_logging(settings)
    if settings.otel_endpoint:
        configure_otel(settings)
    asyncio.run(run_agent(settings))


if __name__ == "__main__":
    main()
