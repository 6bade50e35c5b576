"""
Green Scanner API - FastAPI Main Entry

LOCAL:
    cd backend
    source .venv/bin/activate
    python -m uvicorn green_scanner.main:app --reload --host 0.0.0.0 --port 8000

TEST:
    curl -i http://127.0.0.1:8000/health
    curl -i http://127.0.0.1:8000/v1/tools
    curl -i -X POST http://127.0.0.1:8000/api/find \
        -H 'Content-Type: application/json' \
        -d '{"product_query": "Barilla Spaghetti"}'

PRODUCTION:
    python -m uvicorn green_scanner.main:app --host 0.0.0.0 --port $PORT
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from green_scanner.api.routes_scan import router as scan_router
from green_scanner.api.routes_tools import router as tools_router
from green_scanner.core.config import settings


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Green Scanner API",
        version=settings.APP_VERSION,
        description="Product sustainability lookup with greener alternatives",
    )

    # The widget is served from the agent host's origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {
            "name": "Green Scanner API",
            "status": "ok",
            "docs": "/docs",
            "health": "/health",
            "version": "/version",
            "tools": "/v1/tools",
        }

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/version")
    def version():
        return {"version": settings.APP_VERSION, "build": settings.BUILD_ID}

    app.include_router(tools_router)
    app.include_router(scan_router)

    return app


app = create_app()
