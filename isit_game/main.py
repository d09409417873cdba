from contextlib import asynccontextmanager
import logging
import traceback

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from isit_game.database import Base, SessionLocal, engine
import isit_game.models  # noqa: F401  # Ensure all SQLAlchemy models are registered
from isit_game.routers import polls as polls_router
from isit_game.routers import progress as progress_router
from isit_game.routers import rounds as rounds_router
from isit_game.utils.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logging.getLogger("isit_game").info("Database initialized.")
    yield
    logging.getLogger("isit_game").info("Application shutdown.")


app = FastAPI(
    title="IS/IT Game",
    description="Classify word pairs into IS and IT and progress through stages.",
    lifespan=lifespan,
)

app.include_router(polls_router.router)
app.include_router(rounds_router.router)
app.include_router(progress_router.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger = logging.getLogger("isit_game")
    logger.error(f"Global exception: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Please check logs."},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger = logging.getLogger("isit_game")
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} error: {exc.detail}")
    else:
        logger.info(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger = logging.getLogger("isit_game")
    error_messages = [err["msg"] for err in exc.errors()]
    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": error_messages},
    )


@app.get("/health", tags=["healthcheck"])
async def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:  # noqa: BLE001
        logging.getLogger("isit_game").error(
            f"Health check database connection error: {e}"
        )
        raise HTTPException(
            status_code=503, detail=f"Database connection failed: {str(e)}"
        )
    finally:
        db.close()
