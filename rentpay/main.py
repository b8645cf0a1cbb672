"""Main application entry point."""

import logging
import os

import uvicorn
from dotenv import load_dotenv

from rentpay.services.logging import setup_server_logging

# Load environment variables
load_dotenv()

# Configure logging (with file logging)
setup_server_logging()
logger = logging.getLogger(__name__)


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Serve the payment API with Uvicorn."""
    from rentpay.api.app import app

    logger.info(f"Starting Uvicorn server on {host}:{port}...")
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
