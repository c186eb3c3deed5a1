from urllib.parse import urlencode

from fastapi import APIRouter

from app.core.config import settings
from app.schemas.dashboard import EmbeddableUrl, EmbeddableUrlRequest, EmbeddableUrlResponse

router = APIRouter()


@router.post(
    "/embeddable-url",
    response_model=EmbeddableUrlResponse,
    summary="Get embeddable dashboard URL",
)
async def get_embeddable_url(data: EmbeddableUrlRequest) -> EmbeddableUrlResponse:
    """Build a dashboard URL carrying the customer and any dashboard options."""
    query = urlencode(
        [("customer_id", data.customer_id)]
        + [(option.key, option.value) for option in data.dashboard_options]
    )
    base_url = settings.DASHBOARD_BASE_URL.rstrip("/")
    return EmbeddableUrlResponse(
        data=EmbeddableUrl(url=f"{base_url}/dashboards/{data.dashboard}?{query}")
    )
