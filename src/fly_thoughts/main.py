"""
# Fly Thoughts API - Application Entry Point

Builds the FastAPI application: lifespan management, CORS, exception handlers and routers.

## Lifespan

**Startup:**
1. Connect to MongoDB (`db_manager.connect()`, retried with back-off).
2. Create or verify indexes (`db_manager.create_indexes()`).

**Shutdown:** disconnect from MongoDB.

## Error Rendering

Every domain error (`FlyThoughtsError` subclasses) and every request validation failure is
rendered as:

```json
{"error": {"code": "NOT_FOUND", "message": "Post not found", "details": {"slug": "x"}}}
```

| Source                     | Status |
|----------------------------|--------|
| `ValidationError`          | 400    |
| Request body/query invalid | 400    |
| `ForbiddenError`           | 403    |
| `NotFoundError`            | 404    |
| `ConflictError`            | 409    |
| `StorageError` / DB down   | 503    |

## Running

```bash
uvicorn fly_thoughts.main:app --reload --host 0.0.0.0 --port 8000
```

Attributes:
    app (FastAPI): The application instance served by uvicorn.
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from fly_thoughts.config import settings
from fly_thoughts.database import db_manager
from fly_thoughts.exceptions import FlyThoughtsError, StorageError, ValidationError
from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.routes.comments import router as comments_router
from fly_thoughts.routes.posts import router as posts_router
from fly_thoughts.routes.users import router as users_router

logger = get_logger(prefix="[Main]")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Connect to MongoDB and ensure indexes before serving, disconnect on shutdown.

    Args:
        _app (FastAPI): The FastAPI application instance.
    """
    startup_start_time = time.time()
    logger.info("Initiating database connection...")
    await db_manager.connect()

    logger.info("Creating/verifying database indexes...")
    await db_manager.create_indexes()
    logger.info("Startup completed in %.3fs", time.time() - startup_start_time)

    try:
        yield
    finally:
        logger.info("Shutting down, closing database connection")
        await db_manager.disconnect()


app = FastAPI(
    title="Fly Thoughts API",
    description="Content publishing service: posts, threaded comments, likes, bookmarks and follows.",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

logger.info(f"Configuring CORS with origins: {settings.cors_origins_list}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


@app.exception_handler(FlyThoughtsError)
async def domain_error_handler(request: Request, exc: FlyThoughtsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in exc.errors()]
    error = ValidationError("Invalid request", {"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(ConnectionError)
async def database_unavailable_handler(request: Request, exc: ConnectionError):
    logger.error("%s %s failed, database unavailable: %s", request.method, request.url.path, exc)
    error = StorageError("Database unavailable")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/api/health", tags=["System"])
async def health():
    """Report whether MongoDB answers a ping."""
    healthy = await db_manager.health_check()
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "healthy" if healthy else "unhealthy", "database": healthy},
    )


logger.info("Including API routers...")
for router in (posts_router, comments_router, users_router):
    app.include_router(router)
    logger.info(f"Successfully included router {router.prefix}")


if __name__ == "__main__":
    uvicorn.run("fly_thoughts.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info")
