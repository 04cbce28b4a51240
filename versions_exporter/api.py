from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from . import __version__
from .metrics import MetricsRegistry
from .reconciler import Reconciler


def create_app(metrics: MetricsRegistry, reconciler: Reconciler | None = None) -> FastAPI:
    """HTTP surface of the exporter. The reconciler, if given, runs for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if reconciler is not None:
            reconciler.start()
        yield
        if reconciler is not None:
            reconciler.stop()

    app = FastAPI(title="Versions Exporter", version=__version__, lifespan=lifespan)

    @app.get("/metrics")
    def get_metrics() -> Response:
        return Response(content=metrics.exposition(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health() -> dict:
        body: dict = {"status": "healthy"}
        if reconciler is not None:
            body["state"] = reconciler.state
            body["cycles"] = reconciler.cycles
        return body

    return app
