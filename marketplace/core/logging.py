"""
Logging setup. Modules log through ``logging.getLogger(__name__)``;
this only configures the root handler once at startup.
"""

import logging

from marketplace.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure root logging from settings (idempotent)."""
    level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("marketplace").setLevel(level)
