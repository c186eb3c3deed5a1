from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.repositories.usage_event_repository import UsageEventRepository
from app.schemas.usage import UsageIngestRequest, UsageIngestResponse

router = APIRouter()


@router.post("/ingest", response_model=UsageIngestResponse, summary="Ingest usage events")
async def ingest_usage(
    data: UsageIngestRequest,
    db: Session = Depends(get_db),
) -> UsageIngestResponse:
    """Store a batch of usage events. The whole batch is rejected if any event is invalid."""
    events = UsageEventRepository(db).create_batch(data.usage)
    return UsageIngestResponse(message="Usage events ingested successfully", count=len(events))
