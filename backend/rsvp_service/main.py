import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from rsvp_service.api.routes import admin, email, health, rsvp
from rsvp_service.core.config import settings
from rsvp_service.core.logging import setup_logging
from rsvp_service.db.base import Base
from rsvp_service.db.session import SessionLocal, engine

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})...")

    logger.info("📦 Creating database tables...")
    Base.metadata.create_all(bind=engine)

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        logger.info("✅ Database connection successful")
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        raise

    if not settings.SMTP_SERVER:
        logger.warning("⚠️  SMTP_SERVER not set, confirmation emails will fail")
    if not settings.ADMIN_PASSWORD:
        logger.warning("⚠️  ADMIN_PASSWORD not set, admin endpoints are locked")

    yield

    logger.info("👋 Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Guest lists, RSVP confirmation and invite delivery for events",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Erro interno do servidor"})


# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(rsvp.router, prefix="/api", tags=["RSVP"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(email.router, prefix="/api/email", tags=["Email"])


@app.get("/")
def root():
    """Root endpoint with API information"""
    return {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "health": "/api/health",
            "rsvp": "/api/rsvp",
            "confirm_by_email": "/api/rsvp/confirm-by-email",
            "guest_image": "/api/rsvp/guest-image",
            "guest_list": "/api/rsvp/list",
            "import_guests": "/api/admin/import-guests",
            "import_logs": "/api/admin/import-logs",
            "upload_invites": "/api/admin/upload-invites-db",
            "send_confirmation": "/api/email/send-confirmation"
        }
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)
