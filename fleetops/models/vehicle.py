"""
Vehicle and Validation Workflow Models

A vehicle must pass a validation workflow (maintenance, administrative,
HSECQ and OBC steps) before it can be dispatched. The vehicle's
operational status mirrors the workflow outcome.
"""

from enum import Enum


class VehicleStatus(str, Enum):
    """Operational status stored on ``vehicules.statut``."""
    AVAILABLE = "disponible"
    ON_MISSION = "en_mission"
    MAINTENANCE = "maintenance"
    VALIDATION_REQUIRED = "validation_requise"
    UNAVAILABLE = "indisponible"


class ValidationStep(str, Enum):
    """Steps of the vehicle validation workflow; each is owned by the role of the same name."""
    MAINTENANCE = "maintenance"
    ADMINISTRATIF = "administratif"
    HSECQ = "hsecq"
    OBC = "obc"


class StepStatus(str, Enum):
    """Outcome of a single validation step."""
    PENDING = "en_attente"
    VALIDATED = "valide"
    REJECTED = "rejete"
