"""
LetterDesk - FastAPI Application

Main entry point for the LetterDesk backend.

Architecture:
- SessionManager  → signup / login / password reset over the RecordStore
- LetterFacade    → role-scoped letter CRUD and admin queries
- AffiliateLedger → referral credit and employee stats
- DraftGenerator  → template completion through the AI service
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import RECORD_STORE_LOCAL, RECORD_STORE_SQL, get_settings
from .database import SessionLocal, configure_database, init_db
from .errors import LetterDeskError
from .routers import admin_router, affiliates_router, auth_router, letters_router
from .services.affiliate_ledger import AffiliateLedger
from .services.demo_data import initialize_demo_accounts
from .services.record_store import JsonFileRecordStore, SqlRecordStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def seed_demo_data(store) -> None:
    """Demo admin/employee accounts and the mock affiliate, each seeded once."""
    initialize_demo_accounts(store)
    AffiliateLedger(store).initialize_mock_affiliates()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, initialize the database and seed demo data on startup."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.require_startup_settings()

    if settings.record_store == RECORD_STORE_SQL:
        connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
        configure_database(settings.database_url, connect_args=connect_args)
        init_db()

    if settings.seed_demo_data:
        if settings.record_store == RECORD_STORE_LOCAL:
            seed_demo_data(JsonFileRecordStore(settings.local_store_dir))
        else:
            db = SessionLocal()
            try:
                seed_demo_data(SqlRecordStore(db))
            finally:
                db.close()

    logger.info(f"LetterDesk started ({settings.record_store} record store)")
    yield


# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="LetterDesk",
    description="""
    LetterDesk - Legal Letter Drafting Service

    Users sign up, draft demand and cease-and-desist letters from templates
    with AI assistance, and track each letter through its review workflow.

    ## Roles
    - **user**: manages their own letters
    - **employee**: also sees their affiliate referral stats
    - **admin**: also sees every account and letter, assigns affiliate codes

    ## Letter workflow
    draft → submitted → in_review → approved → completed (cancel from any open state)
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LetterDeskError)
async def letterdesk_error_handler(request: Request, exc: LetterDeskError):
    """Render typed failures as {"detail": message, "code": code}."""
    code = getattr(exc, "detail_code", exc.code)
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {code}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == 401 else None
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "code": code},
        headers=headers,
    )


# Include routers
app.include_router(auth_router)
app.include_router(letters_router)
app.include_router(admin_router)
app.include_router(affiliates_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "LetterDesk",
        "version": VERSION,
        "description": "Legal Letter Drafting Service",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": VERSION}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
