"""
FARCO - Conservator assessment backend API
FastAPI over a Google Sheets database (Batches / Items / Selections / Photos)
with photos stored in Google Drive.

Install dependencies:
pip install -e .

Run server:
uvicorn main:app --host 0.0.0.0 --port 8000
"""

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
import contextvars
import logging
import os
import time
import uuid

from settings import get_settings
from adapters.sheets import open_store
from core.assessment import AssessmentService
from core.drive_client import DriveFileStore
from core.errors import AssessmentError
from core.properties import PropertyStore

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)
request_start_time_var = contextvars.ContextVar('request_start_time', default=None)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()

# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_assessment_service() -> AssessmentService:
    """
    Build the service for one request. The spreadsheet is opened fresh every
    time; nothing about the document is cached between requests.
    """
    s = get_settings()
    files = DriveFileStore()
    return AssessmentService(
        store=open_store(s),
        files=files,
        props=PropertyStore(s.properties_file),
        tz=s.timezone,
        photos_root_id=lambda: files.resolve_root(s),
        notes_rules_sheet=s.notes_rules_sheet,
    )

# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="FARCO Assessment API",
    description="Backend for the conservator assessment form (Google Sheets + Drive)",
    version="1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

@app.middleware("http")
async def request_tracing_middleware(request, call_next):
    """Add request_id and timing to all requests."""
    request_id = str(uuid.uuid4())[:8]
    request_id_var.set(request_id)
    request_start_time_var.set(time.time())

    response = await call_next(request)

    latency = time.time() - request_start_time_var.get()
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({round(latency * 1000, 2)} ms) [{request_id}]"
    )

    response.headers["X-Request-ID"] = request_id
    return response

ALLOWED_ORIGINS = settings.get_origins_list()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Raised outside the routers' own handling, e.g. while opening the store in a dependency
@app.exception_handler(AssessmentError)
async def assessment_exception_handler(request, exc: AssessmentError):
    logger.error(f"{type(exc).__name__}: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )

# ============================================================================
# ENDPOINTS
# ============================================================================
@app.get("/")
async def root():
    """Serve the assessment form, or an API banner if the page isn't deployed."""
    page = settings.index_html_path()
    if page.exists():
        return FileResponse(str(page), media_type="text/html")
    return {
        "message": "FARCO Assessment API",
        "version": "1.0",
        "status": "running",
        "docs": "/docs"
    }

@app.get("/healthz")
async def healthz():
    """Liveness probe: is the process alive and responding?"""
    return {
        "status": "ok",
        "timestamp": time.time(),
        "version": "1.0"
    }

@app.get("/readyz")
async def readyz():
    """Readiness probe: can the database spreadsheet be opened?"""
    try:
        store = open_store(get_settings())
        return {
            "status": "ready",
            "spreadsheet_url": store.url,
            "timestamp": time.time()
        }
    except Exception as e:
        logger.error(f"Readiness check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "error": str(e),
                "timestamp": time.time()
            }
        )

from routers import assessment as assessment_router
app.include_router(assessment_router.router)

@app.on_event("startup")
async def startup_event():
    logger.info("FARCO Assessment API starting up...")
    logger.info(f"Spreadsheet: {settings.spreadsheet_key() or settings.sheets_spreadsheet_title}")
    logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
