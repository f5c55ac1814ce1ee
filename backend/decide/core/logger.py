import logging
from logging.handlers import RotatingFileHandler

from decide.core.settings import get_settings

# Parent of every logger in the service (decide.rooms, decide.ws, ...).
decide_logger = logging.getLogger("decide")


def configure_logging() -> logging.Logger:
    settings = get_settings()
    decide_logger.setLevel(settings.log_level)

    # Prevent duplicate handlers
    if settings.log_file and not decide_logger.handlers:
        # Rotating file handler: max 5 MB per file, keep 3 backups
        file_handler = RotatingFileHandler(settings.log_file, maxBytes=5*1024*1024, backupCount=3)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)
        decide_logger.addHandler(file_handler)
    return decide_logger
