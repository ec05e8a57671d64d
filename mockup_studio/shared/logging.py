from __future__ import annotations

import logging

from mockup_studio.shared.config import get_settings


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, resolved, logging.INFO))
