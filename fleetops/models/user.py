"""
User Model

Application users as stored in the backend ``users`` relation:
- Identity (id, email, names)
- Assigned roles
- Module permissions (or the ``all`` sentinel)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class UserRole(str, Enum):
    """User role types."""
    ADMIN = "admin"
    TRANSPORT = "transport"
    MAINTENANCE = "maintenance"
    HSECQ = "hsecq"
    OBC = "obc"
    RH = "rh"
    FACTURATION = "facturation"
    DIRECTION = "direction"
    ADMINISTRATIF = "administratif"
    TRANSITAIRE = "transitaire"
    DIRECTEUR_EXPLOITATION = "directeur_exploitation"

    @classmethod
    def parse(cls, value: "str | UserRole") -> "UserRole":
        """Coerce a string to a role. Unknown values raise ValueError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


class Permission(str, Enum):
    """Module permissions. ALL grants every module."""
    TRANSPORT = "transport"
    MAINTENANCE = "maintenance"
    RH = "rh"
    FACTURATION = "facturation"
    HSECQ = "hsecq"
    OBC = "obc"
    ADMINISTRATIF = "administratif"
    ALL = "all"

    @classmethod
    def parse(cls, value: "str | Permission") -> "Permission":
        """Coerce a string to a permission. Unknown values raise ValueError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown permission: {value!r}") from None


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class User:
    """
    Authenticated application user.

    ``roles`` keeps the backend's ordering; the first entry is the
    primary role shown in the UI.
    """

    id: str
    email: str
    roles: tuple[UserRole, ...] = ()
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    first_name: str = ""
    last_name: str = ""
    status: UserStatus = UserStatus.ACTIVE

    @property
    def role(self) -> UserRole | None:
        """Primary role."""
        return self.roles[0] if self.roles else None

    @property
    def is_admin(self) -> bool:
        """Check if user is admin."""
        return UserRole.ADMIN in self.roles

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email or "Utilisateur"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        """
        Build a user from a ``users`` row.

        Accepts either a ``roles`` array or a single ``role`` column, and
        ``permissions`` / ``module_permissions`` arrays. Admins are granted
        ``all`` on load. Unknown role or permission strings raise ValueError.
        """
        raw_roles: Iterable[str] = row.get("roles") or ([row["role"]] if row.get("role") else [])
        roles = tuple(dict.fromkeys(UserRole.parse(r) for r in raw_roles))

        raw_permissions = row.get("permissions") or row.get("module_permissions") or []
        permissions = {Permission.parse(p) for p in raw_permissions}
        if UserRole.ADMIN in roles:
            permissions.add(Permission.ALL)

        return cls(
            id=str(row["id"]),
            email=row.get("email", ""),
            roles=roles,
            permissions=frozenset(permissions),
            first_name=row.get("first_name") or row.get("prenom") or "",
            last_name=row.get("last_name") or row.get("nom") or "",
            status=UserStatus(row.get("status") or "active"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role.value if self.role else None,
            "roles": [r.value for r in self.roles],
            "permissions": sorted(p.value for p in self.permissions),
            "status": self.status.value,
        }
