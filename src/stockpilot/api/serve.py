"""Token proxy server for ``stockpilot serve``.

Runs the versioned ``/api/v1/`` routers behind CORS so a browser or desktop
client can exchange OAuth codes without ever seeing the client secret.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_BUILTIN_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]


def create_api_app():
    """Build the FastAPI application with the v1 routers."""
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    from stockpilot.api.v1 import mount_v1_routers
    from stockpilot.config import get_settings

    settings = get_settings()

    app = FastAPI(
        title="StockPilot Token Proxy",
        description="Exchanges Mercado Livre OAuth codes and refresh tokens server-side.",
        version="1.0.0",
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    # --- CORS -----------------------------------------------------------
    origins = list(set(_BUILTIN_ORIGINS + list(settings.api_cors_allowed_origins)))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=False,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    mount_v1_routers(app)

    if not settings.proxy_configured:
        logger.warning(
            "STOCKPILOT_ML_APP_ID / STOCKPILOT_ML_CLIENT_SECRET are not set; "
            "token requests will fail with a configuration error"
        )
    return app


def run_api_server(
    host: str = "127.0.0.1",
    port: int = 3001,
    dev: bool = False,
) -> None:
    """Start the token proxy with uvicorn."""
    import uvicorn

    logger.info("Token proxy listening on http://%s:%d/api/v1/mercadolivre/token", host, port)
    logger.info("API docs: http://%s:%d/api/v1/docs", host, port)

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent.parent)
        uvicorn.run(
            "stockpilot.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        app = create_api_app()
        uvicorn.run(app, host=host, port=port, log_config=None)
