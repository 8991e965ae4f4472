from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storm_intel.config import settings
from storm_intel.database import get_db
from storm_intel.dependencies import get_notifier, get_prediction_service
from storm_intel.middleware.auth import get_current_user, require_roles
from storm_intel.models.crm import User
from storm_intel.schemas.prediction import (
    AffectedCustomersMeta,
    AffectedCustomersResponse,
    NotifyRequest,
    NotifyResponse,
    PredictionsMeta,
    PredictionsResponse,
    PredictionSummaryResponse,
)
from storm_intel.services.notifier import Notifier
from storm_intel.services.prediction_service import PredictiveStormService, summarize

router = APIRouter(prefix="/weather/predictions", tags=["predictions"])

TIER_PATTERN = "^(marginal|slight|enhanced|moderate|high)$"


@router.get("", response_model=PredictionsResponse | PredictionSummaryResponse)
async def get_predictions(
    state: str | None = Query(None, pattern="^[A-Za-z]{2}$"),
    hours: int = Query(settings.prediction_default_hours, ge=1, le=168),
    summary: bool = Query(False),
    min_severity: str | None = Query(None, alias="minSeverity", pattern=TIER_PATTERN),
    db: Session = Depends(get_db),
    service: PredictiveStormService = Depends(get_prediction_service),
    user: User = Depends(get_current_user),
):
    """Upcoming storm predictions, soonest first. ``summary=true`` returns the condensed buckets."""
    predictions = await service.get_predictions(
        db, state=state, hours_ahead=hours, min_severity=min_severity,
    )
    if summary:
        return PredictionSummaryResponse(data=summarize(predictions))

    return PredictionsResponse(
        data=predictions,
        meta=PredictionsMeta(
            total_predictions=len(predictions),
            hours_ahead=hours,
            state=state.upper() if state else "all",
            generated_at=datetime.now(timezone.utc),
        ),
    )


@router.post("/notify", response_model=NotifyResponse)
async def notify_prediction(
    req: NotifyRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_roles("manager", "admin")),
):
    return await notifier.notify(db, user.id, req)


@router.get("/{prediction_id}/affected-customers", response_model=AffectedCustomersResponse)
def get_affected_customers(
    prediction_id: str,
    limit: int = Query(settings.affected_customers_default_limit, ge=1, le=500),
    db: Session = Depends(get_db),
    service: PredictiveStormService = Depends(get_prediction_service),
    user: User = Depends(get_current_user),
):
    customers = service.get_affected_customers(db, prediction_id)
    return AffectedCustomersResponse(
        data=customers[:limit],
        meta=AffectedCustomersMeta(total=len(customers), prediction_id=prediction_id, limit=limit),
    )
