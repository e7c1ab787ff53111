"""
Logging setup shared by every thoughtgraph module.
"""

import logging
import sys
from typing import Optional

from .config import AppConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# AWS SDK and HTTP clients log every request at DEBUG
NOISY_LOGGERS = ('botocore', 'boto3', 'urllib3', 'opensearch')


def _level(config: Optional[AppConfig]) -> int:
    if config is None:
        from .config import config
    return getattr(logging, config.log_level.upper(), logging.INFO)


def setup_logging(config: Optional[AppConfig] = None) -> None:
    """Send records to stdout at LOG_LEVEL and keep SDK loggers at WARNING or above."""
    level = _level(config)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stdout)])

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str, config: Optional[AppConfig] = None) -> logging.Logger:
    """Module logger at the configured level; pass ``__name__``."""
    logger = logging.getLogger(name)
    logger.setLevel(_level(config))
    return logger
