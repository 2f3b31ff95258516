"""
Document Alerting Service

Classifies vehicle and driver documents by how close they are to expiry:

    days_remaining = ceil((expiration - now) / 1 day)

    days_remaining < 0             -> expired
    0 <= days_remaining <= window  -> to renew (window defaults to 30)
    otherwise                      -> valid (dropped from alert output)

The expiration instant is midnight UTC of the expiration date.
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable, Iterable

from fleetops.config import settings
from fleetops.core.backend import BackendClient, BackendError, get_backend_client
from fleetops.models.document import AlertLevel, AlertRecord, DocumentOwner, DocumentRecord
from fleetops.observability.logger import get_logger
from fleetops.observability.metrics import MetricsTimer, metrics_collector
from fleetops.observability.tracer import trace_operation

logger = get_logger(__name__, service="alerts")

MS_PER_DAY = 86_400_000

VEHICLE_DOCUMENTS_TABLE = "documents_vehicules"
DRIVER_DOCUMENTS_TABLE = "documents_chauffeurs"


def days_remaining(expiration_date: date, now: datetime) -> int:
    """Whole days until expiry, rounded up; negative once expired."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    expires_at = datetime.combine(expiration_date, time.min, tzinfo=timezone.utc)
    delta_ms = (expires_at - now).total_seconds() * 1000
    return math.ceil(delta_ms / MS_PER_DAY)


def classify(days: int, renewal_window_days: int | None = None) -> AlertLevel:
    """Map days remaining to an alert level."""
    window = settings.alert_renewal_window_days if renewal_window_days is None else renewal_window_days
    if days < 0:
        return AlertLevel.EXPIRED
    if days <= window:
        return AlertLevel.TO_RENEW
    return AlertLevel.VALID


def compute_alerts(
    documents: Iterable[DocumentRecord],
    now: datetime,
    renewal_window_days: int | None = None,
) -> list[AlertRecord]:
    """
    Build actionable alerts for a batch of documents.

    Documents without an expiration date and documents still valid are
    left out. Input order is preserved and the input is not modified.
    """
    alerts: list[AlertRecord] = []
    for document in documents:
        if document.expiration_date is None:
            continue
        days = days_remaining(document.expiration_date, now)
        level = classify(days, renewal_window_days)
        if level is AlertLevel.VALID:
            continue
        alerts.append(AlertRecord(document=document, days_remaining=days, level=level))
    return alerts


@dataclass
class AlertSummary:
    """Counts shown on the dashboard alert cards."""

    total: int = 0
    expired: int = 0
    to_renew: int = 0
    urgent: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "expired": self.expired,
            "to_renew": self.to_renew,
            "urgent": self.urgent,
        }


def summarize(alerts: Iterable[AlertRecord], urgent_window_days: int | None = None) -> AlertSummary:
    """Count alerts by level; ``urgent`` are to-renew alerts within the urgent window."""
    urgent_window = settings.alert_urgent_window_days if urgent_window_days is None else urgent_window_days
    summary = AlertSummary()
    for alert in alerts:
        summary.total += 1
        if alert.level is AlertLevel.EXPIRED:
            summary.expired += 1
        elif alert.level is AlertLevel.TO_RENEW:
            summary.to_renew += 1
            if alert.days_remaining <= urgent_window:
                summary.urgent += 1
    return summary


class DocumentAlertService:
    """
    Fetches documents from the backend and computes their alerts.

    A failed fetch is logged and yields no alerts; the dashboards show
    an empty list rather than an error.
    """

    def __init__(
        self,
        backend: BackendClient | None = None,
        renewal_window_days: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.backend = backend or get_backend_client()
        self.renewal_window_days = (
            settings.alert_renewal_window_days if renewal_window_days is None else renewal_window_days
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _fetch(self, table: str, columns: str, owner: DocumentOwner) -> list[DocumentRecord]:
        rows = await self.backend.select(
            table,
            columns=columns,
            params={"date_expiration": "not.is.null"},
            order="date_expiration.asc",
        )
        if owner is DocumentOwner.VEHICLE:
            return [DocumentRecord.from_vehicle_row(row) for row in rows]
        return [DocumentRecord.from_driver_row(row) for row in rows]

    async def _alerts_for(self, table: str, columns: str, owner: DocumentOwner) -> list[AlertRecord]:
        error = False
        with MetricsTimer() as timer, trace_operation("alerts.fetch", {"table": table}) as span:
            try:
                documents = await self._fetch(table, columns, owner)
            except (BackendError, KeyError, ValueError) as e:
                error = True
                logger.error("Failed to load documents for alerts", table=table, error=str(e))
                documents = []

            alerts = compute_alerts(documents, self._clock(), self.renewal_window_days)
            span.set_attribute("alerts", len(alerts))

        metrics_collector.record_alerts(timer.duration_ms, error)
        logger.debug("Alerts computed", table=table, documents=len(documents), alerts=len(alerts))
        return alerts

    async def fetch_vehicle_alerts(self) -> list[AlertRecord]:
        """Alerts for vehicle documents."""
        return await self._alerts_for(
            VEHICLE_DOCUMENTS_TABLE,
            "id,vehicule_id,nom,type,date_expiration,statut,vehicules(numero,immatriculation)",
            DocumentOwner.VEHICLE,
        )

    async def fetch_driver_alerts(self) -> list[AlertRecord]:
        """Alerts for driver documents."""
        return await self._alerts_for(
            DRIVER_DOCUMENTS_TABLE,
            "id,chauffeur_id,nom,type,date_expiration,statut,chauffeurs(nom,prenom)",
            DocumentOwner.DRIVER,
        )

    async def fetch_all_alerts(self) -> list[AlertRecord]:
        """Vehicle and driver alerts merged, most critical first."""
        driver_alerts, vehicle_alerts = await asyncio.gather(
            self.fetch_driver_alerts(),
            self.fetch_vehicle_alerts(),
        )
        return sorted([*driver_alerts, *vehicle_alerts], key=lambda a: a.days_remaining)
