"""
FastAPI Application Entry Point

Bootstraps the FastAPI app, logging, middleware, error handlers and routes.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.errors import PyMongoError

from favely.config import get_settings
from favely.db import get_connection
from favely.errors import FavelyError, RateLimitError
from favely.routes.api import router as api_router
from favely.utils.logger import configure_logging
from favely.utils.logging_middleware import RequestLoggingMiddleware

# Configure logging early
configure_logging(app_name="favely", service="api")

settings = get_settings()  # reads from environment / .env


@asynccontextmanager
async def lifespan(app: FastAPI):
    connection = get_connection()
    try:
        connection.ensure_indexes()
        logger.info("✔ MongoDB ready")
    except PyMongoError as e:
        logger.error(f"Failed to prepare MongoDB indexes: {e}")

    yield

    connection.close()
    logger.info("✔ MongoDB connection closed")


app = FastAPI(
    title="favely app",
    description="An API for creating, sharing and collaborating on lists",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(FavelyError)
async def favely_error_handler(request: Request, exc: FavelyError):
    if exc.status_code >= 500:
        logger.bind(path=request.url.path).error(f"  ✖ {type(exc).__name__}: {exc.message}")
    else:
        logger.bind(path=request.url.path, status=exc.status_code).debug(f"  ! {exc.message}")
    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
        headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.bind(path=request.url.path).error(f"  ✖ [DB] {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.bind(path=request.url.path).opt(exception=exc).error(f"  ✖ Unhandled {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


# Middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(api_router, prefix="/api")


@app.get("/")
def root():
    return {"status": "ok", "service": "favely", "env": settings.app_env}


@app.get("/health")
def health():
    return {"status": "healthy"}


def run():
    import uvicorn

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()
