"""callprobe query server.

Creates the FastAPI app and mounts the span/trace query router. The
tracer is held on ``app.state`` so tests and embedders can supply their
own:
    from callprobe.server import create_app
    app = create_app(tracer)
"""

import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..logging_config import StructuredLogger, setup_logging
from ..tracer import Tracer, get_tracer
from .actions import handle_action
from .routes import router

logger = StructuredLogger(__name__)


def _split_csv_env(name: str) -> list[str]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def create_app(tracer: Tracer | None = None) -> FastAPI:
    load_dotenv()
    tracer = tracer or get_tracer()
    setup_logging(tracer.config.log_level, tracer.config.log_dir, tracer.tracker)

    app = FastAPI(title="callprobe", version=__version__)
    app.state.tracer = tracer

    cors_origins = _split_csv_env("CALLPROBE_CORS_ORIGINS")
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials="*" not in cors_origins,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    app.include_router(router)
    logger.info("Query server configured", app_id=tracer.config.app_id, max_spans=tracer.store.max_spans)
    return app


__all__ = ["create_app", "handle_action"]
