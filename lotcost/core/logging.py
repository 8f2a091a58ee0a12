from __future__ import annotations

import logging

from lotcost.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    global _configured
    if _configured:
        return
    settings = get_settings()
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    # SQL echo stays off unless explicitly requested through the sqlalchemy logger.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
