# reimburse/core/logging.py
import logging

from reimburse.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None):
    """Configure the root logger once for the API process."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo stays off unless explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
