"""
Entry point for the study cycle tracker API.

Run with:
    uvicorn main:app --port 8100
    python main.py
"""
import sys
from pathlib import Path

import uvicorn
from loguru import logger

from config import get_settings
from src.api.main import app  # noqa: F401  (re-exported for `uvicorn main:app`)

settings = get_settings()


def configure_logging() -> None:
    """Send loguru output to stderr and, when configured, to a rotating log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)


if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
