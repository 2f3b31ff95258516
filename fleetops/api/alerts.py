"""
Document Alerts API

Expiring and expired vehicle / driver documents for the dashboard.
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fleetops.api.deps import get_alert_service, get_current_user
from fleetops.models.user import User
from fleetops.services.alert_service import DocumentAlertService, summarize

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


class AlertListResponse(BaseModel):
    """Alerts sorted by urgency."""
    alerts: list[dict]
    total: int


@router.get("/documents", response_model=AlertListResponse)
async def list_document_alerts(
    owner: Literal["vehicule", "chauffeur"] | None = None,
    service: DocumentAlertService = Depends(get_alert_service),
    user: User = Depends(get_current_user),
):
    """
    List documents that are expired or due for renewal.

    Query Parameters:
        owner: Restrict to vehicle ("vehicule") or driver ("chauffeur") documents
    """
    if owner == "vehicule":
        alerts = await service.fetch_vehicle_alerts()
    elif owner == "chauffeur":
        alerts = await service.fetch_driver_alerts()
    else:
        alerts = await service.fetch_all_alerts()

    return AlertListResponse(alerts=[a.to_dict() for a in alerts], total=len(alerts))


@router.get("/summary")
async def alert_summary(
    service: DocumentAlertService = Depends(get_alert_service),
    user: User = Depends(get_current_user),
):
    """Alert counts: total, expired, to renew, and urgent (renewal due within a week)."""
    alerts = await service.fetch_all_alerts()
    return summarize(alerts).to_dict()
