import logging
from typing import Optional

from fee_ledger.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging() -> logging.Logger:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logger = logging.getLogger("fee_ledger")
    logger.setLevel(level)

    # Avoid duplicate console handlers on reload
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        ch.setLevel(level)
        logger.addHandler(ch)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger("fee_ledger")
    if not name:
        return base
    if name.startswith("fee_ledger."):
        name = name[len("fee_ledger."):]
    return base.getChild(name)
