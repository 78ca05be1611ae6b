# gradebook/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradebook.core.config import settings
from gradebook.core.logging import configure_logging
from gradebook.db.base import Base
from gradebook.db.session import engine

# Import routers (router objects, not modules)
from gradebook.api.assessments import router as assessments_router
from gradebook.api.attempts import router as attempts_router
from gradebook.api.submissions import router as submissions_router
from gradebook.api.results import router as results_router

import gradebook.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")
    yield


app = FastAPI(
    title="Gradebook Service",
    version="1.0.0",
    lifespan=lifespan,
)

# --------------------------------------------------
# CORS CONFIG
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=r"http://localhost(:[0-9]+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --------------------------------------------------
# API ROUTES
# --------------------------------------------------

# Authoring + student assessment list
app.include_router(assessments_router, prefix="/api/v1")

# Taking an assessment (start, submit)
app.include_router(attempts_router, prefix="/api/v1")

# Results + teacher grading of one submission
app.include_router(submissions_router, prefix="/api/v1")

# Class results + exports
app.include_router(results_router, prefix="/api/v1")


# --------------------------------------------------
# ROOT HEALTH CHECK
# --------------------------------------------------
@app.get("/")
def health_check():
    return {
        "status": "ok",
        "service": "Gradebook Service",
        "version": "1.0.0"
    }
