from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bizfinder.config import get_settings
from bizfinder.database import connect_to_mongo, close_mongo_connection, get_database
from bizfinder.extraction.router import router as extraction_router
from bizfinder.jobs.processor import close_job_processor, get_job_processor
from bizfinder.jobs.repository import get_job_repository
from bizfinder.jobs.router import router as jobs_router
from bizfinder.jobs.submitter import close_job_submitter
from bizfinder.llm.client import close_llm_client
from bizfinder.search.clients import close_google_search_client
from bizfinder.search.router import router as search_router
from bizfinder.traceability.repository import TraceabilityRepository
from bizfinder.traceability.router import router as traceability_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - MongoDB, indexes, job poller and HTTP clients."""
    # Startup
    await connect_to_mongo()
    db = get_database()

    try:
        await TraceabilityRepository(db).ensure_indexes()
        await get_job_repository(db).ensure_indexes()
    except Exception as e:
        logger.warning(f"Index creation failed (non-fatal): {e}")

    if settings.job_poller_enabled:
        get_job_processor(get_job_repository(db)).start()

    yield

    # Shutdown
    await close_job_processor()
    await close_job_submitter()
    await close_google_search_client()
    await close_llm_client()
    await close_mongo_connection()


app = FastAPI(title="BizFinder API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(search_router)
app.include_router(extraction_router)
app.include_router(traceability_router)
app.include_router(jobs_router)


@app.get("/health")
def health():
    return {"status": "ok"}
