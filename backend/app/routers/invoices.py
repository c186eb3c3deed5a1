from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_webhook_service
from app.repositories.invoice_repository import InvoiceRepository
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceDataResponse,
    InvoiceIdData,
    InvoiceIdResponse,
    InvoiceListResponse,
    InvoiceResponse,
)
from app.schemas.shared import UTCDateTime
from app.services.invoice_service import InvoiceService
from app.services.webhook_service import WebhookService

# Mounted under /v1/customers
customer_router = APIRouter()
# Mounted under /v1/invoices
router = APIRouter()


@customer_router.post(
    "/{customer_id}/invoices",
    response_model=InvoiceDataResponse,
    status_code=201,
    summary="Create invoice",
    responses={404: {"description": "Customer or contract not found"}},
)
async def create_invoice(
    customer_id: str,
    data: InvoiceCreate,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> InvoiceDataResponse:
    """Create an invoice for one of the customer's contracts."""
    invoice = InvoiceService(db, webhooks).create_invoice(customer_id, data)
    return InvoiceDataResponse(data=InvoiceResponse.model_validate(invoice))


@customer_router.get(
    "/{customer_id}/invoices",
    response_model=InvoiceListResponse,
    summary="List customer invoices",
)
async def list_invoices(
    customer_id: str,
    status: str | None = Query(default=None),
    starting_on: UTCDateTime | None = Query(default=None),
    ending_before: UTCDateTime | None = Query(default=None),
    sort: str = Query(default="date_desc", pattern="^date_(asc|desc)$"),
    limit: int = Query(default=100, ge=1),
    db: Session = Depends(get_db),
) -> InvoiceListResponse:
    invoices = InvoiceRepository(db).get_all(
        customer_id,
        status=status,
        starting_on=starting_on,
        ending_before=ending_before,
        sort=sort,
        limit=limit,
    )
    return InvoiceListResponse(data=[InvoiceResponse.model_validate(i) for i in invoices])


@customer_router.get(
    "/{customer_id}/invoices/{invoice_id}",
    response_model=InvoiceDataResponse,
    summary="Get invoice",
)
async def get_invoice(
    customer_id: str,
    invoice_id: str,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> InvoiceDataResponse:
    invoice = InvoiceService(db, webhooks).get_invoice(customer_id, invoice_id)
    return InvoiceDataResponse(data=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/void", response_model=InvoiceIdResponse, summary="Void invoice")
async def void_invoice(
    invoice_id: str,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> InvoiceIdResponse:
    InvoiceService(db, webhooks).void_invoice(invoice_id)
    return InvoiceIdResponse(data=InvoiceIdData(id=invoice_id))
