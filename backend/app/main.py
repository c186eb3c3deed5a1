import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.database import get_db, init_db, reset_db
from app.core.errors import BillingError
from app.core.locks import contract_locks
from app.routers import balances, contracts, customers, dashboards, invoices, usage, webhooks
from app.services.webhook_service import WebhookDispatcher

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Customers", "description": "Create, read and archive customers."},
    {"name": "Contracts", "description": "Create, read and edit contracts."},
    {"name": "Balances", "description": "Prepaid balances per customer and product."},
    {"name": "Invoices", "description": "Create, list and void invoices."},
    {"name": "Usage", "description": "Ingest usage events."},
    {"name": "Dashboards", "description": "Embeddable dashboard URLs."},
    {"name": "Webhooks", "description": "Webhook targets, verification and dispatch."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    app.state.webhook_dispatcher.shutdown()


init_db()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "An emulator of a usage-based billing platform's contract API for "
        "integration testing: customers, contracts and contract edits, credits, "
        "balances, invoices, usage ingestion and webhooks."
    ),
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)
app.state.webhook_dispatcher = WebhookDispatcher()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
    logger.info("%s %s", request.method, request.url.path)
    return await call_next(request)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "status": status_code}},
    )


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return _error_response(400, "; ".join(messages) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    return _error_response(exc.status_code, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error")


app.include_router(customers.router, prefix="/v1/customers", tags=["Customers"])
app.include_router(invoices.customer_router, prefix="/v1/customers", tags=["Invoices"])
app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
# Balances first so /balances is not captured by /{contract_id}.
app.include_router(balances.router, prefix="/v1/contracts", tags=["Balances"])
app.include_router(contracts.router, prefix="/v1/contracts", tags=["Contracts"])
app.include_router(contracts.router, prefix="/v2/contracts", tags=["Contracts"])
app.include_router(usage.router, prefix="/v1/usage", tags=["Usage"])
app.include_router(dashboards.router, prefix="/v1/dashboards", tags=["Dashboards"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.version}


@app.post("/reset")
async def reset(db: Session = Depends(get_db)) -> dict[str, str]:
    """Drop all stored state. Registered webhook targets are kept."""
    reset_db(db)
    contract_locks.reset()
    logger.info("Store reset")
    return {"status": "reset"}
