from pydantic import BaseModel, Field


class DashboardOption(BaseModel):
    key: str
    value: str


class EmbeddableUrlRequest(BaseModel):
    customer_id: str = Field(..., min_length=1)
    dashboard: str = Field(..., min_length=1)
    dashboard_options: list[DashboardOption] = Field(default_factory=list)


class EmbeddableUrl(BaseModel):
    url: str


class EmbeddableUrlResponse(BaseModel):
    data: EmbeddableUrl
