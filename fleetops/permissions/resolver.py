"""
Permission Resolver

Pure capability checks over a user's roles and module permissions.

Rules:
- No user: every check is False.
- Admin role: every check is True.
- ``all`` permission: every permission check is True.
- Otherwise exact membership.

Queries take enum members; strings are coerced and, for a signed-in
user, an unknown string raises ValueError rather than silently denying.
"""

from dataclasses import asdict, dataclass

from fleetops.models.user import Permission, User, UserRole
from fleetops.models.vehicle import ValidationStep


def has_permission(user: User | None, permission: Permission | str) -> bool:
    """True if the user may use the given module permission."""
    if user is None:
        return False
    wanted = Permission.parse(permission)
    if user.is_admin:
        return True
    return Permission.ALL in user.permissions or wanted in user.permissions


def has_role(user: User | None, role: UserRole | str) -> bool:
    """True if the user holds the role. Admin satisfies every role check."""
    if user is None:
        return False
    wanted = UserRole.parse(role)
    return wanted in user.roles or user.is_admin


def has_module_permission(user: User | None, module: Permission | str) -> bool:
    """Alias used by module navigation guards."""
    return has_permission(user, module)


def can_validate_step(user: User | None, step: ValidationStep | str) -> bool:
    """
    Whether the user may validate a step of a vehicle validation workflow.

    Each step is owned by the role of the same name; admins may validate
    every step. Unknown steps are never validatable.
    """
    if user is None:
        return False
    if user.is_admin:
        return True

    try:
        step = ValidationStep(step)
    except ValueError:
        return False

    match step:
        case ValidationStep.MAINTENANCE:
            return UserRole.MAINTENANCE in user.roles
        case ValidationStep.ADMINISTRATIF:
            return UserRole.ADMINISTRATIF in user.roles
        case ValidationStep.HSECQ:
            return UserRole.HSECQ in user.roles
        case ValidationStep.OBC:
            return UserRole.OBC in user.roles


@dataclass(frozen=True)
class HSEQCapabilities:
    """What a user may do in the HSEQ compliance module."""

    can_view_hseq: bool = False
    can_manage_controls: bool = False
    can_manage_nc: bool = False
    can_view_stats: bool = False
    can_export: bool = False
    is_admin: bool = False
    is_hseq: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


def hseq_capabilities(user: User | None) -> HSEQCapabilities:
    """Derive HSEQ module capabilities from the user's roles."""
    if user is None:
        return HSEQCapabilities()

    roles = set(user.roles)
    is_admin = UserRole.ADMIN in roles
    is_hseq = UserRole.HSECQ in roles
    is_direction = UserRole.DIRECTION in roles
    is_transport = UserRole.TRANSPORT in roles

    return HSEQCapabilities(
        can_view_hseq=is_admin or is_hseq or is_direction or is_transport,
        can_manage_controls=is_admin or is_hseq,
        can_manage_nc=is_admin or is_hseq,
        can_view_stats=is_admin or is_hseq or is_direction,
        can_export=is_admin or is_hseq or is_direction,
        is_admin=is_admin,
        is_hseq=is_hseq,
    )
