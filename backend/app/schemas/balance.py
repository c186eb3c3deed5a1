from pydantic import BaseModel

from app.schemas.contract import ProductRef


class BalanceResponse(BaseModel):
    product: ProductRef
    balance: float | None = None


class BalanceListResponse(BaseModel):
    data: list[BalanceResponse]
