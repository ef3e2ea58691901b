"""CLI entry point: python -m zipfill"""

from __future__ import annotations

import uvicorn

from zipfill.config import ZipFillConfig
from zipfill.observability.logging import setup_logging


def main() -> None:
    config = ZipFillConfig.from_yaml()
    setup_logging(config.log_level)

    uvicorn.run(
        "zipfill.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
