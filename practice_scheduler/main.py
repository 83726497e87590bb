# practice_scheduler/main.py
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .core.logging import setup_logging
from .database import create_tables
from .errors import NotFoundError, SlotNoLongerAvailable, UpstreamStoreError, ValidationError
from .limiter import limiter
from .routers import appointments, exceptions, health, payers, providers

settings = get_settings()
logger = setup_logging(debug=settings.debug, json_logs=settings.is_production)

app = FastAPI(title=settings.app_name, version=settings.app_version)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.on_event("startup")
def on_startup():
    create_tables()
    logger.info("startup.complete", environment=settings.environment)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)


# ==================== ERROR MAPPING ====================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "errors": exc.errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(SlotNoLongerAvailable)
async def slot_taken_handler(request: Request, exc: SlotNoLongerAvailable):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "retryable": exc.retryable},
    )


@app.exception_handler(UpstreamStoreError)
async def upstream_store_handler(request: Request, exc: UpstreamStoreError):
    logger.error("store.unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


app.include_router(providers.router, prefix="/api/v1")
app.include_router(exceptions.router, prefix="/api/v1")
app.include_router(payers.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api/v1")


if __name__ == "__main__":
    uvicorn.run("practice_scheduler.main:app", host="0.0.0.0", port=8000, reload=settings.is_development)
