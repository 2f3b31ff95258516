"""
Permission Definitions

Display labels for roles and module permissions, and the role owning
each validation step.
"""

from fleetops.models.user import Permission, UserRole

ROLE_LABELS: dict[UserRole, str] = {
    UserRole.ADMIN: "Administrateur",
    UserRole.TRANSPORT: "Transport",
    UserRole.MAINTENANCE: "Maintenance",
    UserRole.HSECQ: "HSECQ",
    UserRole.OBC: "OBC",
    UserRole.RH: "Ressources Humaines",
    UserRole.FACTURATION: "Facturation",
    UserRole.DIRECTION: "Direction",
    UserRole.ADMINISTRATIF: "Administratif",
    UserRole.TRANSITAIRE: "Transitaire",
    UserRole.DIRECTEUR_EXPLOITATION: "Directeur d'exploitation",
}

MODULE_LABELS: dict[Permission, str] = {
    Permission.TRANSPORT: "Transport",
    Permission.MAINTENANCE: "Maintenance",
    Permission.RH: "Ressources Humaines",
    Permission.FACTURATION: "Facturation",
    Permission.HSECQ: "HSECQ",
    Permission.OBC: "OBC",
    Permission.ADMINISTRATIF: "Administratif",
    Permission.ALL: "Tous les modules",
}

# Roles that own a step of the vehicle validation workflow
VALIDATION_ROLES: tuple[UserRole, ...] = (
    UserRole.MAINTENANCE,
    UserRole.ADMINISTRATIF,
    UserRole.HSECQ,
    UserRole.OBC,
)


def role_label(role: UserRole | str) -> str:
    return ROLE_LABELS[UserRole.parse(role)]


def module_label(permission: Permission | str) -> str:
    return MODULE_LABELS[Permission.parse(permission)]
