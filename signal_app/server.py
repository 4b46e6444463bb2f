"""Process entry point: engine, periodic jobs and HTTP API in one process."""

import argparse
import sys
from pathlib import Path
from typing import Optional

import structlog
import uvicorn

from .api import create_app
from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .engine import SignalEngine
from .logging import configure_from_params

logger = structlog.get_logger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Signal admission and redemption engine")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    args = parser.parse_args(argv)

    loader = ConfigLoader.create(args.config)
    merged = loader.merge_config()

    errors = ConfigValidator.validate_config(merged)
    if errors:
        for err in errors:
            print(f"{err.field}: {err.message} (got: {err.value})", file=sys.stderr)
        return 2

    config = loader.load()
    configure_from_params(config.logging)

    engine = SignalEngine(config)
    app = create_app(engine, manage_engine=True)

    logger.info("Starting API server", host=config.api.host, port=config.api.port)
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_level="warning")
    return 0


if __name__ == "__main__":
    sys.exit(main())
