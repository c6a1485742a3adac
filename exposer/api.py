"""FastAPI status API for the exposer controller."""

import asyncio
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request

from .controller import Controller
from .logging_config import get_logger, log_api_request, log_api_response, log_function_entry, log_function_exit
from .models import ExposureInfo, SyncSummary

logger = get_logger(__name__)

app = FastAPI(
    title="Exposer",
    description="Exposes Kubernetes services and records their external URLs",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests and responses."""
    start_time = asyncio.get_event_loop().time()

    log_api_request(logger, request.method, str(request.url.path),
                    client_ip=request.client.host if request.client else "unknown")

    response = await call_next(request)

    duration = asyncio.get_event_loop().time() - start_time
    log_api_response(logger, request.method, str(request.url.path),
                     response.status_code,
                     duration_ms=round(duration * 1000, 2))
    return response

controller: Optional[Controller] = None
_sync_lock = asyncio.Lock()


async def get_controller() -> Controller:
    """Get the global Controller instance."""
    if controller is None:
        raise HTTPException(status_code=503, detail="Controller not initialized")
    return controller


def initialize_controller(instance: Controller) -> None:
    """Install the Controller the API reports on and syncs with."""
    log_function_entry(logger, "initialize_controller", strategy=instance.strategy.kind)
    global controller
    controller = instance
    logger.info("Controller registered with API",
                strategy=instance.strategy.kind,
                sync_interval=instance.config.sync_interval)
    log_function_exit(logger, "initialize_controller", status="success")


async def run_sync(ctrl: Controller) -> SyncSummary:
    """Run one sync pass off the event loop; passes never overlap."""
    async with _sync_lock:
        return await asyncio.to_thread(ctrl.sync_all)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "exposer"}


@app.get("/status")
async def get_status():
    """Strategy in use and the outcome of the last sync pass."""
    ctrl = await get_controller()
    last_sync = ctrl.last_sync.model_dump() if ctrl.last_sync else None
    return {
        "strategy": ctrl.strategy.kind,
        "domain": getattr(ctrl.strategy, "domain", None),
        "namespaces": ctrl.namespaces,
        "last_sync": last_sync,
    }


@app.get("/exposures", response_model=List[ExposureInfo])
async def get_exposures(
    namespace: Optional[str] = Query(None, description="Filter by namespace"),
):
    """List services that currently carry an exposure URL."""
    ctrl = await get_controller()
    try:
        return await asyncio.to_thread(ctrl.exposures, namespace)
    except Exception as e:
        logger.error("Listing exposures failed", error=str(e))
        raise HTTPException(status_code=502, detail=f"Listing exposures failed: {str(e)}")


@app.post("/sync", response_model=SyncSummary)
async def trigger_sync():
    """Manually trigger a sync pass."""
    logger.info("Manual sync triggered")
    ctrl = await get_controller()
    try:
        return await run_sync(ctrl)
    except Exception as e:
        logger.error("Manual sync failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Sync failed: {str(e)}")


async def periodic_sync():
    """Background task re-running the sync pass every sync_interval seconds."""
    logger.info("Starting periodic sync background task")

    while True:
        try:
            if controller:
                summary = await run_sync(controller)
                logger.debug("Periodic sync completed", failed=summary.failed)
                await asyncio.sleep(controller.config.sync_interval)
            else:
                logger.warning("Controller not initialized, sleeping for default interval")
                await asyncio.sleep(30)

        except Exception as e:
            logger.error("Periodic sync failed", error=str(e))
            await asyncio.sleep(60)


@app.on_event("startup")
async def startup_event():
    """Start the periodic sync on application startup."""
    if controller:
        asyncio.create_task(periodic_sync())


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down exposer API")
