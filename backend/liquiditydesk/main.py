from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from liquiditydesk.api import routes, stream
from liquiditydesk.config.settings import Settings, settings as default_settings
from liquiditydesk.errors import TransportError
from liquiditydesk.services import Services, build_services

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def _transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    logger.error("Request to %s failed: %s", request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": exc.message})


def create_app(
    settings: Settings | None = None,
    services: Services | None = None,
    start_polling: bool = True,
) -> FastAPI:
    settings = settings or default_settings
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_polling:
            services.broadcaster.start()
            logger.info(
                "Polling %d symbols every %.1fs",
                len(settings.symbols),
                settings.poll_interval_seconds,
            )
        try:
            yield
        finally:
            await services.broadcaster.stop()

    app = FastAPI(title="liquiditydesk", lifespan=lifespan)
    app.state.services = services
    app.add_exception_handler(TransportError, _transport_error_handler)
    app.include_router(routes.router, prefix="/api")
    app.include_router(stream.router)
    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Crypto liquidity aggregation service")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to LIQUIDITYDESK_LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    level = args.log_level or default_settings.log_level
    setup_logging(level)
    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=level.lower())


if __name__ == "__main__":
    main()
