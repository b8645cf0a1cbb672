"""CLI entry point for the overdue payment sweep.

Meant to be run by a scheduler (cron, systemd timer) once a day.

Usage:
    python -m rentpay.cli.sweep

Exit Codes:
    0 - Success: Sweep completed (possibly marking nothing)
    1 - Failure: Error encountered; no payment was changed
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from rentpay.services.config import get_settings
from rentpay.services.db import dispose_engine, get_session_factory
from rentpay.services.gateway import RazorpayGateway
from rentpay.services.logging import setup_server_logging
from rentpay.services.payment_service import PaymentService


async def main() -> int:
    """Run one overdue sweep.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    load_dotenv()
    settings = get_settings()
    setup_server_logging(log_file="logs/sweep.log", level=settings.log_level)
    logger = logging.getLogger("rentpay.cli.sweep")
    logger.info("Starting overdue payment sweep...")

    gateway = RazorpayGateway.from_settings(settings)
    try:
        async with get_session_factory()() as session:
            service = PaymentService.for_session(session, gateway, settings)
            marked = await service.mark_overdue_payments()
        logger.info("Sweep finished: %d payment(s) marked overdue", marked)
        return 0
    except KeyboardInterrupt:
        logger.warning("Sweep interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)
        return 1
    finally:
        await gateway.aclose()
        await dispose_engine()


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
