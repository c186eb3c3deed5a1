"""Contract API endpoints, served under both /v1/contracts and /v2/contracts."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_webhook_service
from app.schemas.contract import (
    ContractCreate,
    ContractGetRequest,
    ContractIdData,
    ContractIdResponse,
    ContractListResponse,
    ContractResponse,
)
from app.schemas.contract_edit import ContractEditRequest
from app.schemas.shared import UTCDateTime
from app.services.contract_edit_service import ContractEditService
from app.services.contract_service import ContractService
from app.services.webhook_service import WebhookService

router = APIRouter()


@router.post(
    "/",
    response_model=ContractIdResponse,
    status_code=201,
    summary="Create contract",
    responses={404: {"description": "Customer not found"}, 409: {"description": "Uniqueness key used"}},
)
@router.post("/create", response_model=ContractIdResponse, status_code=201, include_in_schema=False)
async def create_contract(
    data: ContractCreate,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> ContractIdResponse:
    """Create a contract for an existing customer."""
    contract = ContractService(db, webhooks).create_contract(data)
    return ContractIdResponse(data=ContractIdData(id=contract.id))


@router.get("/", response_model=ContractListResponse, summary="List contracts")
async def list_contracts(
    customer_id: str = Query(..., min_length=1),
    covering_date: UTCDateTime | None = Query(default=None),
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> ContractListResponse:
    """List a customer's contracts, optionally only those started by ``covering_date``."""
    contracts = ContractService(db, webhooks).list_contracts(customer_id, covering_date)
    return ContractListResponse(data=contracts)


@router.post("/get", response_model=ContractResponse, summary="Get contract")
async def get_contract_by_body(
    data: ContractGetRequest,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> ContractResponse:
    contract = ContractService(db, webhooks).get_contract(data.contract_id, data.customer_id)
    return ContractResponse(data=contract)


@router.api_route(
    "/edit",
    methods=["POST", "PUT", "PATCH"],
    response_model=ContractIdResponse,
    summary="Edit contract",
    responses={
        404: {"description": "Contract not found"},
        409: {"description": "Uniqueness key used"},
    },
)
async def edit_contract(
    data: ContractEditRequest,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> ContractIdResponse:
    """Apply an incremental edit to a contract."""
    result = ContractEditService(db, webhooks).edit_contract(data)
    return ContractIdResponse(data=ContractIdData(id=result.id))


@router.api_route(
    "/{contract_id}/edit",
    methods=["POST", "PUT", "PATCH"],
    response_model=ContractIdResponse,
    include_in_schema=False,
)
async def edit_contract_by_path(
    contract_id: str,
    data: ContractEditRequest,
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> ContractIdResponse:
    data.contract_id = contract_id
    result = ContractEditService(db, webhooks).edit_contract(data)
    return ContractIdResponse(data=ContractIdData(id=result.id))


@router.get("/{contract_id}", response_model=ContractResponse, summary="Get contract")
async def get_contract(
    contract_id: str,
    customer_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> ContractResponse:
    contract = ContractService(db, webhooks).get_contract(contract_id, customer_id)
    return ContractResponse(data=contract)
