"""
Access API

Tells the client what the signed-in user may see and do, so menus and
actions can be shown or hidden.
"""

from fastapi import APIRouter, Depends

from fleetops.api.deps import get_current_user
from fleetops.models.user import Permission, User
from fleetops.models.vehicle import ValidationStep
from fleetops.permissions import can_validate_step, has_permission, hseq_capabilities, module_label, role_label

router = APIRouter(prefix="/api/v1/permissions", tags=["permissions"])


@router.get("/me")
async def my_permissions(user: User = Depends(get_current_user)):
    """
    Permissions of the current user.

    Response:
        {
            "user": {...},
            "roles": [{"role": "hsecq", "label": "HSECQ"}],
            "modules": {"transport": false, "hsecq": true, ...},
            "validation_steps": {"maintenance": false, "hsecq": true, ...},
            "hseq": {"can_view_hseq": true, ...}
        }
    """
    modules = {
        permission.value: has_permission(user, permission)
        for permission in Permission
        if permission is not Permission.ALL
    }
    return {
        "user": user.to_dict(),
        "roles": [{"role": role.value, "label": role_label(role)} for role in user.roles],
        "modules": modules,
        "module_labels": {key: module_label(key) for key in modules},
        "validation_steps": {step.value: can_validate_step(user, step) for step in ValidationStep},
        "hseq": hseq_capabilities(user).to_dict(),
    }
