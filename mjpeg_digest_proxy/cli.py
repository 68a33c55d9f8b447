"""Command-line entry point: parse options, set up logging, serve."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import uvicorn

from mjpeg_digest_proxy.core.config import load_config
from mjpeg_digest_proxy.core.logging import setup_logging
from mjpeg_digest_proxy.main import create_app
from mjpeg_digest_proxy.metrics.prometheus import start_metrics_server

log = logging.getLogger("mjpeg_digest_proxy.cli")


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = load_config(argv)
    setup_logging(config.log_dir)

    if config.metrics_port is not None:
        start_metrics_server(config.metrics_port, addr=config.host)
        log.info("metrics on %s:%d", config.host, config.metrics_port)

    app = create_app(config)
    log.info("listening_on=%s proxying_to=%s", config.bind, config.url)
    # uvicorn stops accepting on SIGINT/SIGTERM, then waits for open streams
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_config=None,
        timeout_graceful_shutdown=config.shutdown_timeout_s,
    )
    return 0
