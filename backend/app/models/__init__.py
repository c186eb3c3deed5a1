from app.models.balance import Balance
from app.models.contract import Contract
from app.models.customer import Customer, CustomerIngestAlias
from app.models.invoice import Invoice, InvoiceStatus, InvoiceType
from app.models.uniqueness_key import UniquenessKey
from app.models.usage_event import UsageEvent

__all__ = [
    "Balance",
    "Contract",
    "Customer",
    "CustomerIngestAlias",
    "Invoice",
    "InvoiceStatus",
    "InvoiceType",
    "UniquenessKey",
    "UsageEvent",
]
