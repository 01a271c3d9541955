"""
FastAPI entrypoint for the session tracker backend.
"""
import logging

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from tracker.core.config import settings
from tracker.api.router import api_router
from tracker.api.routes.health import check_health
from tracker.db.session import get_db

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Backend API for logging consumption sessions and reviewing their history",
    version="1.0.0",
    debug=settings.DEBUG
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded images are served from UPLOAD_DIR at /static; the directory is created on first upload
app.mount("/static", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="static")

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors; callers only get a short message."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API is running"}


@app.get("/health")
async def health(db: Session = Depends(get_db)):
    """Health check endpoint."""
    return check_health(db)
