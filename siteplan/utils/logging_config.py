import logging
import sys
from typing import Optional

from siteplan.config.settings import get_settings


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure logging for the service and the optimization engine."""
    settings = get_settings()
    if level is None:
        level = settings.log_level or ("DEBUG" if settings.debug else "INFO")
    log_level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    # Quiet down noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

    return logging.getLogger("siteplan")
