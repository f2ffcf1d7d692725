"""Main entry point for commandwire.

Initializes logging in two phases (defaults then config-driven),
builds the demo framework on a RestGateway, and runs the async event
loop with graceful shutdown on SIGTERM/SIGINT. A SetupError exits with
status 1 before any event is served.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper that calls asyncio.run(main()).
"""

import asyncio
import signal
import sys

import structlog

from . import __version__
from .exceptions import SetupError
from .logging_config import setup_logging


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("commandwire")

    logger.info("commandwire_starting", version=__version__)

    # Import here to ensure logging is configured first
    from .config import get_config
    from .demo import build_options, setup
    from .framework import Framework
    from .gateway import RestGateway

    config = get_config()
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    gateway = RestGateway(
        api_url=config.api_url,
        gateway_url=config.gateway_url,
        token=config.token,
        application_id=config.application_id,
    )
    framework = Framework(build_options(config), gateway, setup=setup, config=config)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported.
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    try:
        await framework.start()
    except SetupError:
        await gateway.close()
        raise

    serve_task = asyncio.create_task(framework.serve(gateway.events()))
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    try:
        await asyncio.wait(
            {serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for task in (serve_task, shutdown_task):
            task.cancel()
        await asyncio.gather(serve_task, shutdown_task, return_exceptions=True)
        await framework.stop(config.shutdown_grace_period)
        logger.info("commandwire_stopped")


def run():
    """Synchronous entry point for the ``commandwire`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SetupError as e:
        print(f"Failed to start bot: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
