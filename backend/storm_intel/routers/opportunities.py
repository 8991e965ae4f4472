from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storm_intel.config import settings
from storm_intel.database import get_db
from storm_intel.errors import InvalidRequestError
from storm_intel.middleware.auth import get_current_user
from storm_intel.models.crm import User
from storm_intel.schemas.opportunity import DailyStormBrief, OpportunitiesResponse
from storm_intel.services import opportunity

router = APIRouter(prefix="/weather", tags=["opportunities"])

STATE_PATTERN = "^[A-Za-z]{2}$"


def _require_state(state: str | None) -> str:
    if not state:
        raise InvalidRequestError("'state' parameter is required")
    return state.upper()


@router.get("/opportunities", response_model=OpportunitiesResponse)
def get_opportunities(
    state: str | None = Query(None, pattern=STATE_PATTERN),
    days: int | None = Query(None, ge=1, le=90),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Valued canvassing opportunities for one state. There is no all-states mode."""
    state = _require_state(state)
    now = datetime.now(timezone.utc)
    opportunities = opportunity.get_storm_opportunities(
        db, state, days or settings.opportunity_lookback_days, now=now,
    )
    return OpportunitiesResponse(
        state=state,
        summary=opportunity.summarize(opportunities),
        opportunities=opportunities,
        timestamp=now,
    )


@router.get("/daily-brief", response_model=DailyStormBrief)
def get_daily_brief(
    state: str | None = Query(None, pattern=STATE_PATTERN),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    state = _require_state(state)
    return opportunity.build_daily_brief(db, state, settings.opportunity_lookback_days)
