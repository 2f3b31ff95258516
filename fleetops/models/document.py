"""
Document Records and Expiry Alerts

Vehicle and driver documents (insurance, technical inspection, licences,
training certificates, ...) with an optional expiration date, plus the
derived alert level used by the HSEQ and fleet dashboards.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


class DocumentOwner(str, Enum):
    """What a document is attached to."""
    VEHICLE = "vehicule"
    DRIVER = "chauffeur"


class AlertLevel(str, Enum):
    """Urgency derived from days remaining before expiry."""
    VALID = "valide"
    TO_RENEW = "a_renouveler"
    EXPIRED = "expire"


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class DocumentRecord:
    """A stored document. Created by the upload flow, read-only here."""

    id: str
    owner_id: str
    type: str
    name: str
    expiration_date: date | None = None
    owner: DocumentOwner = DocumentOwner.VEHICLE
    owner_label: str = ""

    @classmethod
    def from_vehicle_row(cls, row: dict[str, Any]) -> "DocumentRecord":
        """Build from a ``documents_vehicules`` row (optionally joined with ``vehicules``)."""
        vehicle = row.get("vehicules") or {}
        return cls(
            id=str(row["id"]),
            owner_id=str(row.get("vehicule_id", "")),
            type=row.get("type") or "",
            name=row.get("nom") or "",
            expiration_date=_parse_date(row.get("date_expiration")),
            owner=DocumentOwner.VEHICLE,
            owner_label=vehicle.get("numero") or "N/A",
        )

    @classmethod
    def from_driver_row(cls, row: dict[str, Any]) -> "DocumentRecord":
        """Build from a ``documents_chauffeurs`` row (optionally joined with ``chauffeurs``)."""
        driver = row.get("chauffeurs") or {}
        label = f"{driver.get('prenom', '')} {driver.get('nom', '')}".strip()
        return cls(
            id=str(row["id"]),
            owner_id=str(row.get("chauffeur_id", "")),
            type=row.get("type") or "",
            name=row.get("nom") or "",
            expiration_date=_parse_date(row.get("date_expiration")),
            owner=DocumentOwner.DRIVER,
            owner_label=label or "N/A",
        )


@dataclass(frozen=True)
class AlertRecord:
    """A document together with its computed expiry urgency."""

    document: DocumentRecord
    days_remaining: int
    level: AlertLevel

    def to_dict(self) -> dict[str, Any]:
        doc = self.document
        return {
            "id": doc.id,
            "owner": doc.owner.value,
            "owner_id": doc.owner_id,
            "owner_label": doc.owner_label,
            "document_type": doc.type,
            "document_name": doc.name,
            "expiration_date": doc.expiration_date.isoformat() if doc.expiration_date else None,
            "days_remaining": self.days_remaining,
            "level": self.level.value,
        }
