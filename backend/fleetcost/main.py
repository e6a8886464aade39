"""
FastAPI entrypoint for the fleet cost engine.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fleetcost.core.config import settings
from fleetcost.core.exceptions import (
    ConflictError, FleetCostError, InvalidAssetClassError, NotFoundError, PersistenceTimeoutError, ValidationError
)
from fleetcost.api.router import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fleet Cost API",
    description="Diesel cost allocation and efficiency analysis for fleet trips",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (PersistenceTimeoutError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidAssetClassError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


@app.exception_handler(FleetCostError)
async def fleet_cost_error_handler(request: Request, exc: FleetCostError):
    """Map engine errors to HTTP responses naming the entity involved."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": f"{settings.APP_NAME} is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
