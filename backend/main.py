import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from backend/.env
backend_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(backend_dir, ".env"))

# Import after dotenv is loaded
from backend.core.config import settings, validate_config
from backend.core.logging import configure_logging
from backend.core.middleware.request_id import RequestIdMiddleware
from backend.core.database import create_all_tables
from backend.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from backend.api import badges, health, realtime

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("smi")
    logger.info("Starting SMI badges backend...")
    app.state.startup_time = time.time()
    if settings.BADGE_DOCUMENT_BACKEND == "sql":
        create_all_tables()
    try:
        yield
    finally:
        logger.info("Stopping SMI badges backend...")


app = FastAPI(title="SMI Badges", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.WS_ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(badges.router, tags=["badges"])
app.include_router(realtime.router, tags=["realtime"])
app.include_router(health.root_router, tags=["health"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=settings.ENV == "development")
