"""HTTP surface: health, status, manual trigger and result retrieval.

Usage:
    uvicorn blackswan_monitor.main_api:app --port 8090
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .log import setup_logging, get_logger
from .scheduler import CycleScheduler
from .schemas.outputs import utc_now_iso
from .schemas.sources import SOURCE_CONFIG
from .service import BlackSwanService

logger = get_logger("api")


def create_app(service: Optional[BlackSwanService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        svc = service or BlackSwanService()
        scheduler = None
        svc.start()
        if svc.settings.SCHEDULER_ENABLED:
            scheduler = CycleScheduler(svc.run_cycle, interval_hours=svc.settings.ANALYSIS_INTERVAL_HOURS)
            scheduler.start()
        app.state.service = svc
        app.state.started_at = time.monotonic()
        logger.info("Macro Black Swan Analysis Service started")
        yield
        if scheduler:
            scheduler.stop()
        svc.stop()
        logger.info("Service stopped")

    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        svc: BlackSwanService = request.app.state.service
        return {
            "status": "healthy",
            "service": svc.settings.SERVICE_NAME,
            "version": svc.settings.SERVICE_VERSION,
            "timestamp": utc_now_iso(),
            "store": True,
            "openrouter": svc.client.configured,
        }

    @app.post("/api/analysis/trigger")
    async def trigger_analysis(request: Request):
        svc: BlackSwanService = request.app.state.service
        logger.info("Black Swan analysis triggered via API")
        outcome = await run_in_threadpool(svc.run_cycle)
        return {
            "success": True,
            "triggered": True,
            "timestamp": utc_now_iso(),
            "result": outcome.model_dump(mode="json"),
        }

    @app.get("/api/analysis/latest")
    async def latest_analysis(request: Request):
        svc: BlackSwanService = request.app.state.service
        recent = await run_in_threadpool(svc.result_store.latest)
        if recent.error:
            return JSONResponse(status_code=500, content={"error": recent.error, "timestamp": utc_now_iso()})
        if not recent.analyses:
            return {"latest": None, "message": "No analyses available", "timestamp": utc_now_iso()}
        return {"latest": recent.analyses[0], "timestamp": utc_now_iso()}

    @app.get("/api/analysis/recent")
    async def recent_analyses(request: Request, limit: Optional[int] = None):
        svc: BlackSwanService = request.app.state.service
        recent = await run_in_threadpool(svc.result_store.recent, limit)
        if recent.error:
            return JSONResponse(status_code=500, content={"error": recent.error})
        return {
            "analyses": recent.analyses,
            "count": len(recent.analyses),
            "timestamp": utc_now_iso(),
        }

    @app.get("/api/status")
    async def status(request: Request):
        svc: BlackSwanService = request.app.state.service
        quality = svc.aggregator.last_quality
        return {
            "service": svc.settings.SERVICE_NAME,
            "version": svc.settings.SERVICE_VERSION,
            "status": "running",
            "configuration": {
                "analysisIntervalHours": svc.settings.ANALYSIS_INTERVAL_HOURS,
                "model": svc.settings.MODEL,
                "collection": svc.settings.RESULTS_TABLE,
                "services": [source.value for source in SOURCE_CONFIG],
            },
            "sources": svc.aggregator.source_status(),
            "data_quality": quality.model_dump() if quality else None,
            "uptime": time.monotonic() - request.app.state.started_at,
        }

    return app


app = create_app()
