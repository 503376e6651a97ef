"""
Main application entry point.
"""

import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from currency_tracker.app import TrackerApp
from currency_tracker.config import load_config
from currency_tracker.notifiers.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


async def run(app: TrackerApp, once: bool = False) -> None:
    """Check alerts, refresh favorites and keep notifications scheduled."""
    try:
        await app.run_check()

        view = await app.refresh_favorites()
        for key, rates in sorted(view.items()):
            logger.info(
                f"{key}: {rates.latest.rate} ({rates.latest.as_of}) "
                f"vs {rates.previous.rate} ({rates.previous.as_of}), {rates.direction}"
            )

        if once:
            if isinstance(app.sink, NotificationScheduler):
                await app.sink.drain()
            return

        logger.info("Waiting for scheduled notifications (Ctrl+C to stop)")
        await asyncio.Event().wait()
    finally:
        await app.close()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Currency Tracker Alert Service")
    parser.add_argument(
        "--config", default="config.yaml", help="Path to config file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--once", action="store_true", help="Run one check and exit"
    )

    args = parser.parse_args()

    config = load_config(args.config)

    # Setup logging
    log_level = logging.DEBUG if args.debug else config.advanced.log_level.upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = TrackerApp.from_config(config)

    try:
        asyncio.run(run(app, once=args.once))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
