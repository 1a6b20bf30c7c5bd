"""
Run locally: uvicorn checkout.main:app --reload
Production: gunicorn -k uvicorn.workers.UvicornWorker -w 2 -b 0.0.0.0:8000 checkout.main:app
Example:
curl -X POST http://localhost:8000/api/lead \
  -H "Content-Type: application/json" \
  -d '{"firstName":"Jane","lastName":"Doe","emailAddress":"jane@example.com","product1_id":"42"}'
"""

import logging
import logging.config
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from checkout.config import get_settings
from checkout.middleware import configure_middlewares, get_request_id
from checkout.models import (
    CheckoutRequest,
    ConfigMessage,
    CountriesMessage,
    ErrorResponse,
    LeadMessage,
    LeadRequest,
    MapsKeyMessage,
    ProductsMessage,
    SuccessResponse,
)
from checkout.services import CheckoutChampClient, UpstreamError

settings = get_settings()


def configure_logging() -> None:
    """Configure application-wide structured logging."""

    level = settings.log_level.upper()
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_id": {"()": "checkout.middleware.RequestIdFilter"},
        },
        "formatters": {
            "json": {
                "()": "checkout.middleware.JsonFormatter",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["request_id"],
                "stream": "ext://sys.stdout",
            }
        },
        "loggers": {
            "": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": level, "propagate": False},
        },
    }
    logging.config.dictConfig(logging_config)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    upstream = CheckoutChampClient(settings)
    app.state.upstream = upstream
    logger.info("Checkout proxy starting", extra={"environment": settings.environment})
    try:
        yield
    finally:
        await upstream.aclose()


openapi_tags = [
    {"name": "health", "description": "Service uptime checks."},
    {"name": "catalog", "description": "Countries and products of the campaign."},
    {"name": "checkout", "description": "Partial lead capture and order submission."},
    {"name": "config", "description": "Client configuration."},
]

app = FastAPI(
    title="Checkout API",
    description="Proxy between the checkout page and the order-management API.",
    version="1.0.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

limiter = configure_middlewares(app, settings)


def get_upstream(request: Request) -> CheckoutChampClient:
    """Return the order-management client created at startup."""

    return request.app.state.upstream


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return a standardized validation error response."""

    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Validation error"
    logger.warning("Validation failed", extra={"errors": errors})
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(message=message, details=errors).model_dump(exclude_none=True),
    )


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    """Relay order-management failures in the page's error envelope."""

    logger.warning(
        "Upstream call failed",
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(exclude_none=True),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle controlled HTTP errors with sanitized payloads."""

    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    logger.warning(
        "HTTP exception raised",
        extra={"status_code": exc.status_code, "detail": detail},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler to avoid leaking internal details."""

    logger.exception("Unhandled exception")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message="Server error").model_dump(exclude_none=True),
    )


@app.get("/health", tags=["health"], response_model=dict)
async def health_check() -> dict[str, str]:
    """Return service health information."""

    return {"status": "success", "message": "OK"}


@app.get("/api/config", tags=["config"], response_model=SuccessResponse)
async def get_config() -> SuccessResponse:
    message = ConfigMessage(
        campaignId=settings.checkoutchamp_campaign_id,
        googleMapsApiKey="present" if settings.maps_enabled else "missing",
    )
    return SuccessResponse(message=message.model_dump())


@app.get("/api/maps-key", tags=["config"], response_model=SuccessResponse)
async def get_maps_key() -> SuccessResponse:
    """Expose the browser maps key; it is public but should be domain-restricted."""

    if not settings.google_maps_api_key:
        raise HTTPException(status_code=404, detail="Google Maps API key not configured")
    message = MapsKeyMessage(key=settings.google_maps_api_key, mapId=settings.google_maps_map_id or None)
    return SuccessResponse(message=message.model_dump(exclude_none=True))


@app.get("/api/countries", tags=["catalog"], response_model=SuccessResponse)
async def list_countries(upstream: CheckoutChampClient = Depends(get_upstream)) -> SuccessResponse:
    countries = await upstream.query_countries()
    return SuccessResponse(message=CountriesMessage(countries=countries).model_dump())


@app.get("/api/products", tags=["catalog"], response_model=SuccessResponse)
async def list_products(upstream: CheckoutChampClient = Depends(get_upstream)) -> SuccessResponse:
    products = await upstream.query_products()
    return SuccessResponse(message=ProductsMessage(products=products).model_dump())


@app.post("/api/lead", tags=["checkout"], response_model=SuccessResponse)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def sync_lead(
    lead: LeadRequest,
    request: Request,
    upstream: CheckoutChampClient = Depends(get_upstream),
) -> SuccessResponse:
    """Create or update the partial lead for a visitor who has not paid yet."""

    lead_id = await upstream.sync_partial_lead(lead)
    return SuccessResponse(message=LeadMessage(orderId=lead_id).model_dump(exclude_none=True))


@app.post("/api/checkout", tags=["checkout"], response_model=SuccessResponse)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def submit_order(
    order: CheckoutRequest,
    request: Request,
    upstream: CheckoutChampClient = Depends(get_upstream),
) -> SuccessResponse:
    """Forward a fully validated order to the order-management API."""

    client_host = request.client.host if request.client else "unknown"
    logger.info(
        "Order submitted",
        extra={
            "lead_email": order.emailAddress,
            "client_ip": client_host,
            "product_id": order.product1_id,
        },
    )
    confirmation = await upstream.import_order(order)
    return SuccessResponse(message=confirmation.model_dump(exclude_none=True))


@app.middleware("http")
async def append_request_id_header(request: Request, call_next: Any):
    """Ensure every response includes the request id even after other middlewares."""

    response = await call_next(request)
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    if request_id:
        response.headers.setdefault("X-Request-ID", request_id)
    return response


@app.get("/{path:path}", include_in_schema=False)
async def serve_frontend(path: str) -> FileResponse:
    """Serve the checkout page assets, falling back to the page itself for client routes."""

    static_root = Path(settings.static_dir).resolve()
    if path.startswith("api/") or not static_root.is_dir():
        raise HTTPException(status_code=404, detail="Not found")
    candidate = (static_root / path).resolve()
    if path and candidate.is_file() and candidate.is_relative_to(static_root):
        return FileResponse(candidate)
    index = static_root / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(index)
