"""
Opportunity Marketplace - Main Application

FastAPI backend with:
- Relational store (PostgreSQL, SQLite for tests) via SQLAlchemy
- JWT authentication for students and professors/organizations
- Admission-controlled application workflow
- Local file storage for portfolios and verification documents

Run: uvicorn marketplace.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from marketplace.api.routes import api_router
from marketplace.core.config import get_settings
from marketplace.core.errors import MarketplaceError
from marketplace.core.logging import setup_logging
from marketplace.db.session import init_db, check_db_connection

settings = get_settings()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Opportunity Marketplace",
    description="""
    Connects students with internship and research opportunities.

    ## Features
    - **Authentication**: sign-up, sign-in (confirms the account), sign-out
    - **Students**: profile, portfolio upload, applications, daily quota
    - **Professors / organizations**: profile, verification upload, review applications
    - **Opportunities**: post, search, close; applicant caps
    - **Applications**: daily limit, one per opportunity, cap enforcement
    - **Notifications**: accept/reject notices, unread count, live stream
    """,
    version="1.0.0",
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")

# Serve uploaded files at the public storage URL
app.mount("/files", StaticFiles(directory=settings.storage_dir, check_dir=False), name="files")


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Every domain error becomes {"detail": ..., "error": <code>}."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Startup event
@app.on_event("startup")
async def startup_event():
    """Configure logging and make sure the schema exists."""
    setup_logging()
    init_db()


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": "connected" if check_db_connection() else "disconnected"
    }
