"""Root logger setup for the server process."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # Request lines come from the app middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
