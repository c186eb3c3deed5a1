"""Balance endpoints, mounted alongside the contract routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_webhook_service
from app.schemas.balance import BalanceListResponse, BalanceResponse
from app.schemas.contract import ProductRef
from app.services.balance_service import BalanceService
from app.services.webhook_service import WebhookService

router = APIRouter()


@router.get("/balances", response_model=BalanceListResponse, summary="List customer balances")
async def list_balances(
    customer_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> BalanceListResponse:
    balances = BalanceService(db, webhooks).get_all_balances(customer_id)
    return BalanceListResponse(
        data=[
            BalanceResponse(
                product=ProductRef(id=str(b.product_id), name=str(b.product_name)),
                balance=b.balance,  # type: ignore[arg-type]
            )
            for b in balances
        ]
    )
