from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.invoice import InvoiceStatus, InvoiceType
from app.schemas.shared import UTCDateTime


class InvoiceLineItemInput(BaseModel):
    type: str = "usage"
    product_id: str | None = None
    product_name: str | None = None
    amount: float = 0
    is_prorated: bool | None = None


class InvoiceLineItem(InvoiceLineItemInput):
    id: str


class InvoiceCreate(BaseModel):
    contract_id: str = Field(..., min_length=1)
    type: InvoiceType = InvoiceType.USAGE
    line_items: list[InvoiceLineItemInput] = Field(..., min_length=1)
    start_timestamp: UTCDateTime | None = None
    end_timestamp: UTCDateTime | None = None
    status: InvoiceStatus = InvoiceStatus.FINALIZED
    due_date: UTCDateTime | None = None


class ExternalInvoice(BaseModel):
    invoice_id: str
    external_status: str


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    customer_id: str
    contract_id: str
    type: str
    status: str
    issued_at: UTCDateTime | None = None
    start_timestamp: UTCDateTime | None = None
    end_timestamp: UTCDateTime | None = None
    due_date: UTCDateTime | None = None
    total: float
    line_items: list[dict[str, Any]]
    external_invoice: ExternalInvoice | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="invoice_metadata")


class InvoiceDataResponse(BaseModel):
    data: InvoiceResponse


class InvoiceListResponse(BaseModel):
    data: list[InvoiceResponse]


class InvoiceIdData(BaseModel):
    id: str


class InvoiceIdResponse(BaseModel):
    data: InvoiceIdData
