#!/usr/bin/env python3
"""FastAPI server runner."""

import argparse

import structlog
import uvicorn

from webhook_trader.api.app import create_app
from webhook_trader.config.loader import load_config
from webhook_trader.logging.setup import setup_logging

logger = structlog.get_logger("api_runner")


def main(argv=None):
    """Load config, set up logging, serve the app with uvicorn."""
    parser = argparse.ArgumentParser(description="Webhook trading server")
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.logging.level, config.logging.format)

    host = args.host or config.api.host
    port = args.port or config.api.port
    logger.info("server_starting", host=host, port=port, testnet=config.exchange.testnet)

    try:
        uvicorn.run(
            create_app(config),
            host=host,
            port=port,
            log_config=None,
        )
    except Exception as e:
        logger.error("server_failed", error=str(e))
        raise


if __name__ == "__main__":
    main()
