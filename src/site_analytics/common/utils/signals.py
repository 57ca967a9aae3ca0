"""Signal handling shared by the long-running services."""

import asyncio
import logging
import signal


logger = logging.getLogger(__name__)


def install_shutdown_handlers(shutdown_event: asyncio.Event) -> None:
    """Set `shutdown_event` on SIGINT or SIGTERM. Must run inside the event loop."""
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signal.Signals(signum).name}, initiating shutdown")
        shutdown_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signum, lambda s, _: loop.call_soon_threadsafe(signal_handler, s))
