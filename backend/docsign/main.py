from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from docsign.config import settings
from docsign.database import init_db
from docsign.api.middleware import register_error_handlers
from docsign.api.routes import signing
from docsign.scheduler import start_scheduler
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    scheduler = None
    try:
        init_db()
        scheduler = start_scheduler()
        logger.info("Application started")
    except Exception as e:
        logger.error(f"Error during startup: {e}")
        raise
    yield
    # Shutdown
    try:
        if scheduler is not None:
            scheduler.shutdown()
        logger.info("Application shutdown")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="DocSign API",
    description="Upload PDFs, place signature fields and collect signatures by link",
    version=API_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(signing.router, prefix="/api")


@app.get("/")
def root():
    return {"message": "DocSign API", "version": API_VERSION}


@app.get("/health")
def health():
    return {"status": "healthy"}
