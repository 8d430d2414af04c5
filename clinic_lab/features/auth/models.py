# Auth Feature - Models

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class ActorKind(str, Enum):
    """Identity collection a bearer token points into."""
    USER = "user"
    LAB_STAFF = "lab_staff"
    SUPERADMIN_DOCTOR = "superadmin_doctor"


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    CENTER_ADMIN = "centeradmin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    LAB = "lab"
    PATIENT = "patient"
    LAB_STAFF = "lab_staff"
    SUPERADMIN_DOCTOR = "superadmin_doctor"


# Roles whose members may act on every center
GLOBAL_ROLES = {Role.SUPERADMIN, Role.SUPERADMIN_DOCTOR, Role.LAB_STAFF, Role.LAB}


class Actor(BaseModel):
    """
    The authenticated caller, whatever collection it was resolved from.
    
    Users, central lab staff and superadmin doctors live in separate
    collections; routes and the workflow only ever see this shape.
    """
    
    id: str
    name: str
    kind: ActorKind
    role: Role
    center_id: Optional[str] = None
    is_super_admin_staff: bool = False
    
    @property
    def is_global(self) -> bool:
        return self.role in GLOBAL_ROLES
    
    def can_access_center(self, center_id: Optional[str]) -> bool:
        """Center isolation: global roles see everything, others only their own center."""
        if self.is_global:
            return True
        return self.center_id is not None and self.center_id == center_id


# Route-level role groups
LAB_ROLES = (Role.LAB_STAFF, Role.LAB, Role.SUPERADMIN)
ADMIN_ROLES = (Role.SUPERADMIN, Role.CENTER_ADMIN)
REVIEWER_ROLES = (Role.SUPERADMIN_DOCTOR, Role.SUPERADMIN)
REQUESTER_ROLES = (Role.DOCTOR, Role.CENTER_ADMIN, Role.SUPERADMIN)
REPORT_READER_ROLES = (
    Role.DOCTOR,
    Role.CENTER_ADMIN,
    Role.SUPERADMIN,
    Role.SUPERADMIN_DOCTOR,
    Role.LAB_STAFF,
    Role.LAB,
)
