from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import ConflictError, NotFoundError
from app.models.customer import Customer
from app.repositories.customer_repository import CustomerRepository
from app.schemas.customer import (
    CustomerArchiveRequest,
    CustomerCreate,
    CustomerDataResponse,
    CustomerIdData,
    CustomerIdResponse,
    CustomerResponse,
)

router = APIRouter()


def _get_customer(customer_id: str, db: Session) -> Customer:
    customer = CustomerRepository(db).get_by_id(customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


@router.post(
    "/",
    response_model=CustomerDataResponse,
    status_code=201,
    summary="Create customer",
    responses={409: {"description": "Ingest alias already in use"}},
)
async def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
) -> CustomerDataResponse:
    """Create a customer. Ingest aliases must not belong to another customer."""
    repo = CustomerRepository(db)
    for alias in data.ingest_aliases:
        existing = repo.find_by_ingest_alias(alias)
        if existing:
            raise ConflictError(
                "Customer already exists with same ingest_aliases",
                conflicting_id=str(existing.id),
            )
    customer = repo.create(data)
    return CustomerDataResponse(data=CustomerResponse.model_validate(customer))


@router.post("/archive", response_model=CustomerIdResponse, summary="Archive customer")
async def archive_customer_by_body(
    data: CustomerArchiveRequest,
    db: Session = Depends(get_db),
) -> CustomerIdResponse:
    _get_customer(data.id, db)
    CustomerRepository(db).archive(data.id)
    return CustomerIdResponse(data=CustomerIdData(id=data.id))


@router.get("/{customer_id}", response_model=CustomerDataResponse, summary="Get customer")
async def get_customer(
    customer_id: str,
    db: Session = Depends(get_db),
) -> CustomerDataResponse:
    customer = _get_customer(customer_id, db)
    return CustomerDataResponse(data=CustomerResponse.model_validate(customer))


@router.post(
    "/{customer_id}/archive",
    response_model=CustomerIdResponse,
    include_in_schema=False,
)
async def archive_customer(
    customer_id: str,
    db: Session = Depends(get_db),
) -> CustomerIdResponse:
    _get_customer(customer_id, db)
    CustomerRepository(db).archive(customer_id)
    return CustomerIdResponse(data=CustomerIdData(id=customer_id))
