"""Entry point — sets up logging, builds the app and serves it."""

import asyncio
import logging
import sys

import uvicorn
from dotenv import load_dotenv

from .app import create_app
from .config import Config
from .preflight import run_preflight


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main():
    load_dotenv()
    try:
        config = Config()
    except ValueError as exc:
        setup_logging()
        logging.getLogger("game_deals_proxy").error("Configuration error: %s", exc)
        sys.exit(1)

    setup_logging(config.log_level)
    logger = logging.getLogger("game_deals_proxy")

    if "--check" in sys.argv:
        ok = asyncio.run(run_preflight(config))
        sys.exit(0 if ok else 1)

    logger.info("game-deals-proxy starting on %s:%d", config.host, config.port)
    app = create_app(config)
    # Lifespan startup pre-warms the cache before requests are accepted
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    logger.info("game-deals-proxy stopped")


if __name__ == "__main__":
    main()
