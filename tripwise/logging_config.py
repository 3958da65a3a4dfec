import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tripwise.config import settings


def configure_logging(log_file: str = "tripwise.log") -> None:
    """Console + rotating file logging, level taken from LOG_LEVEL."""
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(),
            RotatingFileHandler(
                log_dir / log_file,
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding="utf-8",
            ),
        ],
    )

    # Quiet noisy libraries
    for name in ("httpcore", "httpx", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.WARNING)
