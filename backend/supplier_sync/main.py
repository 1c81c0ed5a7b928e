import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from supplier_sync.core.config import settings
from supplier_sync.routes import health_router, v1_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler.

    On startup (AUTO_START_SCHEDULER=true):
    - Load scheduler config and schedule descriptors
    - Arm the full, incremental and request-processing timers
    - Run a catch-up full sync when the last one is missing or stale

    On shutdown:
    - Cancel timers and let in-flight runs finish
    """
    logger.info("=== Supplier Sync Starting ===")

    scheduler = None
    if settings.auto_start_scheduler:
        from supplier_sync.container import get_sync_scheduler

        scheduler = get_sync_scheduler()
        try:
            await scheduler.initialize()
            await scheduler.start()
            catch_up = await scheduler.run_missed_syncs()
            if catch_up is not None:
                logger.info(f"Startup catch-up: {catch_up.message}")
        except Exception as e:
            logger.error(f"Scheduler startup failed: {e}")
    else:
        logger.info("Scheduler auto-start disabled (AUTO_START_SCHEDULER=false)")

    logger.info("=== Supplier Sync Ready ===")

    yield

    logger.info("=== Supplier Sync Shutting Down ===")
    if scheduler is not None:
        await scheduler.stop(wait=True)
    logger.info("Shutdown complete")


app = FastAPI(title="Supplier Pricing Sync Backend", lifespan=lifespan)
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(v1_router)
