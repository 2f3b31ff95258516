"""
FleetOps Core - Domain Models

- User: identity, roles and module permissions
- DocumentRecord / AlertRecord: document expiry tracking
- Vehicle enums: operational status and validation workflow
"""

from fleetops.models.user import Permission, User, UserRole, UserStatus
from fleetops.models.document import AlertLevel, AlertRecord, DocumentOwner, DocumentRecord
from fleetops.models.vehicle import StepStatus, ValidationStep, VehicleStatus

__all__ = [
    "Permission",
    "User",
    "UserRole",
    "UserStatus",
    "AlertLevel",
    "AlertRecord",
    "DocumentOwner",
    "DocumentRecord",
    "StepStatus",
    "ValidationStep",
    "VehicleStatus",
]
