# xmlwatcher/main.py

"""
Process entry point: configuration, startup banner, signal handling
"""
import asyncio
import logging
import signal
import sys
from typing import Mapping, Optional

from .errors import ConfigError, EventSourceError
from .utils.config import WatchConfig, load_config, mask_url
from .utils.logger import setup_logging
from .watchdog.monitor import FileMonitor

logger = logging.getLogger(__name__)


def log_banner(config: WatchConfig):
    logger.info("Starting XML file watcher...")
    logger.info(f"  Watch directory: {config.watch_dir}")
    logger.info(f"  Webhook URL: {mask_url(config.webhook_url)}")
    logger.info(f"  Webhook method: {config.webhook_method}")
    logger.info(f"  File extensions: {', '.join(config.extensions)}")
    logger.info(f"  Include filename: {config.include_filename}")
    logger.info(f"  Include content: {config.include_content}")
    logger.info(f"  Overwrite with response: {config.overwrite_with_response}")
    logger.info(f"  Settle delay: {config.settle_delay}s")
    if config.retry.enabled:
        logger.info(f"  Retries: {config.retry.max_retries} (backoff {config.retry.backoff}s)")

    if not config.include_filename:
        logger.warning("INCLUDE_FILENAME=false is ignored; the filename is always sent")

    if config.overwrite_with_response and not config.include_content:
        logger.warning(
            "OVERWRITE_WITH_RESPONSE is enabled but INCLUDE_CONTENT is disabled. "
            "File overwrite will not work without including content in the webhook."
        )


async def serve(config: WatchConfig) -> int:
    """Run the monitor until a signal arrives or the event source fails"""
    monitor = FileMonitor.from_config(config)
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass

    monitor_task = asyncio.create_task(monitor.run())
    stop_task = asyncio.create_task(stop_requested.wait())

    try:
        await asyncio.wait({monitor_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if stop_requested.is_set():
            logger.info("Shutting down...")
            # run() stops the watcher and drains in-flight events on its way out
            monitor_task.cancel()
            await asyncio.gather(monitor_task, return_exceptions=True)
            return 0

        # Monitor returned on its own: only an error ends it
        monitor_task.result()
        return 0

    except EventSourceError as e:
        logger.critical(f"File monitoring failed: {e}")
        return 1

    finally:
        stop_task.cancel()
        await monitor.dispatcher.aclose()


def main(env: Optional[Mapping[str, str]] = None) -> int:
    """
    Load configuration and run the watcher

    Returns:
        Process exit code
    """
    try:
        config = load_config(env)
        config.validate()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_file, config.log_format)
    log_banner(config)

    try:
        return asyncio.run(serve(config))
    except ConfigError as e:
        # Watch root removed between validation and observer start
        logger.error(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
