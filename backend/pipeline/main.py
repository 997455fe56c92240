"""
Pipeline worker entrypoint.
Refreshes every configured sport on an interval with jitter; a failed cycle
is logged and the last good snapshot stays in place. The store lives in this
process and is not served by the API, so do not run it alongside an API that
has SL_API_BACKGROUND_REFRESH enabled on the same Gemini key.
"""
from __future__ import annotations

import asyncio
import random
import signal

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from pipeline.orchestrator import IntelOrchestrator
from pipeline.wiring import build_pipeline

logger = get_logger(__name__)


def next_delay(settings: Settings) -> float:
    base = settings.cycle_interval_s
    jitter = base * settings.cycle_jitter_factor * (2 * random.random() - 1)
    return max(1.0, base + jitter)


async def run_refresh_loop(orchestrator: IntelOrchestrator, settings: Settings) -> None:
    """Run one cycle per sport, sleep, repeat until cancelled."""
    while True:
        try:
            for sport in settings.sports:
                result = await orchestrator.run_cycle(sport)
                if not result.success:
                    logger.warning("refresh_cycle_failed", sport=sport, error=result.error)
            await asyncio.sleep(next_delay(settings))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("refresh_loop_error", error=str(e))
            await asyncio.sleep(30)


async def main() -> None:
    setup_logging("worker")
    settings = get_settings()
    start_metrics_server()

    services = build_pipeline(settings)
    await services.start()
    loop_task = asyncio.create_task(run_refresh_loop(services.orchestrator, settings))

    shutdown = asyncio.Event()

    def on_signal() -> None:
        shutdown.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            asyncio.get_running_loop().add_signal_handler(sig, on_signal)
        except NotImplementedError:
            pass

    logger.info("worker_started", sports=settings.sports, interval_s=settings.cycle_interval_s)
    await shutdown.wait()

    loop_task.cancel()
    try:
        await loop_task
    except asyncio.CancelledError:
        pass

    await services.close()
    logger.info("worker_stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
