import logging
import sys
from logging.handlers import RotatingFileHandler
from .config import settings

def setup_logging(log_file: str = settings.log_file, level: int = logging.INFO):
    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(level)

    fmt = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handlers = []

    # Console Handler (stdout)
    c_handler = logging.StreamHandler(sys.stdout)
    c_handler.setLevel(level)
    c_handler.setFormatter(fmt)
    handlers.append(c_handler)

    # File Handler (Rotating)
    if log_file:
        # Max 2MB per file, keep only 1 backup (total ~4MB)
        f_handler = RotatingFileHandler(log_file, maxBytes=2*1024*1024, backupCount=1, encoding='utf-8')
        f_handler.setLevel(level)
        f_handler.setFormatter(fmt)
        handlers.append(f_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Uvicorn Access Logs (capture them too)
    logging.getLogger("uvicorn.access").handlers = list(handlers)
    logging.getLogger("uvicorn.error").handlers = list(handlers)
    logging.getLogger("uvicorn.access").propagate = False
    logging.getLogger("uvicorn.error").propagate = False

    logging.info(f"Logging configured. Writing to {log_file or 'stdout only'}")
