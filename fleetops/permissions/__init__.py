"""
Permission system package.

Re-exports the resolver and label tables.
"""

from .definitions import (
    MODULE_LABELS,
    ROLE_LABELS,
    VALIDATION_ROLES,
    module_label,
    role_label,
)
from .resolver import (
    HSEQCapabilities,
    can_validate_step,
    has_module_permission,
    has_permission,
    has_role,
    hseq_capabilities,
)

__all__ = [
    "MODULE_LABELS",
    "ROLE_LABELS",
    "VALIDATION_ROLES",
    "module_label",
    "role_label",
    "HSEQCapabilities",
    "can_validate_step",
    "has_module_permission",
    "has_permission",
    "has_role",
    "hseq_capabilities",
]
