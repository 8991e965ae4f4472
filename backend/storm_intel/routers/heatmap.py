from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storm_intel.config import settings
from storm_intel.database import get_db
from storm_intel.middleware.auth import get_current_user
from storm_intel.models.crm import User
from storm_intel.schemas.heatmap import HeatmapResponse
from storm_intel.services import heatmap

router = APIRouter(prefix="/weather", tags=["heatmap"])

SEVERITY_PATTERN = "^(minor|moderate|severe|catastrophic)$"


@router.get("/heatmap", response_model=HeatmapResponse)
def get_heatmap(
    months: int = Query(settings.heatmap_default_months, ge=1, le=settings.heatmap_max_months),
    min_severity: str = Query("minor", alias="minSeverity", pattern=SEVERITY_PATTERN),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Scored event points for the lookback window plus top regions by damage."""
    return heatmap.get_heatmap(db, months, min_severity, top_n=settings.heatmap_top_regions)
