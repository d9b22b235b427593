"""
Reviewly Exam API: Main Application
FastAPI application for the exam attempt engine: catalog reads, attempt
lifecycle, grading, insights and recommendations.
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging
import os

from database.database import engine, Base, SessionLocal
from database import models  # noqa: F401  (registers tables on Base)
from routers import exams, exam_definitions
from services.errors import ExamError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables."""
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Reviewly Exam API",
    description="Exam assembly, attempt lifecycle, grading and recommendations",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Error mapping ─────────────────────────────────────────────────────────────

@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    log.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(exam_definitions.router)   # /exam-definitions/*
app.include_router(exams.router)              # /exams/*


@app.get("/")
def root():
    return {
        "name": "Reviewly Exam API",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "exam_definitions": "/exam-definitions",
            "exams": "/exams",
        },
    }


@app.get("/health")
def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        log.warning("Health check database ping failed: %s", e)
        database = "unavailable"
    finally:
        db.close()
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": "reviewly-exam-api",
        "database": database,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
