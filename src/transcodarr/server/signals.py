"""Signal handler setup for ``transcodarr serve``.

SIGTERM (systemd) and SIGINT (Ctrl+C) set the shutdown event; the serve
command then tears the app down, which stops running encodes.
"""

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def setup_signal_handlers(
    loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event
) -> None:
    """Register handlers that set ``shutdown_event``.

    Args:
        loop: The asyncio event loop to register handlers on.
        shutdown_event: Event to signal when shutdown is initiated.
    """

    def handle_shutdown_signal(sig: signal.Signals) -> None:
        if shutdown_event.is_set():
            logger.info("Received %s again; shutdown already in progress", sig.name)
            return
        logger.info("Received %s, initiating graceful shutdown", sig.name)
        shutdown_event.set()

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, handle_shutdown_signal, sig)
            logger.debug("Registered handler for %s", sig.name)
        except (ValueError, RuntimeError, NotImplementedError) as e:
            # ValueError: not in main thread; NotImplementedError: Windows
            logger.warning("Failed to register handler for %s: %s", sig.name, e)


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    """Remove the handlers installed by setup_signal_handlers()."""
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
            logger.debug("Removed handler for %s", sig.name)
        except (ValueError, RuntimeError, NotImplementedError):
            pass  # Handler may not have been registered
