from app.repositories.balance_repository import BalanceRepository
from app.repositories.contract_repository import ContractRepository
from app.repositories.customer_repository import CustomerRepository
from app.repositories.invoice_repository import InvoiceRepository
from app.repositories.uniqueness_key_repository import UniquenessKeyRepository
from app.repositories.usage_event_repository import UsageEventRepository

__all__ = [
    "BalanceRepository",
    "ContractRepository",
    "CustomerRepository",
    "InvoiceRepository",
    "UniquenessKeyRepository",
    "UsageEventRepository",
]
