"""Request-scoped access to the services built at start-up (see main.lifespan)."""

from fastapi import Request

from storm_intel.services.notifier import Notifier
from storm_intel.services.prediction_service import PredictiveStormService


def get_prediction_service(request: Request) -> PredictiveStormService:
    return request.app.state.prediction_service


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier
