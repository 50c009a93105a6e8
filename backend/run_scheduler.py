"""
Run the ingestion pipeline without the HTTP API.

Usage:
    cd backend
    python run_scheduler.py
"""

import asyncio

from feedreader.core.config import settings
from feedreader.core.logging import configure_logging
from feedreader.lifecycle import LifecycleController


async def main():
    controller = LifecycleController(settings)
    await controller.run_until_signalled()


if __name__ == "__main__":
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(main())
