import logging
import sys

from app.core.config import settings


def configure_logging() -> None:
    """
    Configure logging for the whole app.

    Called once from the FastAPI lifespan before anything else logs.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
