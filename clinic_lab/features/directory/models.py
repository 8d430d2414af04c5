# Directory Feature - Models

from enum import Enum
from typing import Optional
from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr
from clinic_lab.shared.models import TimestampMixin
from clinic_lab.features.auth.models import ActorKind


class UserRole(str, Enum):
    SUPERADMIN = "superadmin"
    CENTER_ADMIN = "centeradmin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    LAB = "lab"
    PATIENT = "patient"


class User(Document, TimestampMixin):
    """
    Center-affiliated user account.
    Doctors, receptionists and center admins all live here, distinguished by role.
    """
    
    name: str
    email: Indexed(EmailStr)
    phone: Optional[str] = None
    role: UserRole
    center_id: Optional[str] = None
    
    # Superadmin staff belong to the head office, not to a center
    is_super_admin_staff: bool = False
    
    status: str = "active"
    is_deleted: bool = False
    
    class Settings:
        name = "users"
        use_state_management = True
        indexes = [
            [("role", 1), ("center_id", 1), ("is_deleted", 1)],
        ]
    
    class Config:
        json_schema_extra = {
            "example": {
                "name": "Dr. Asha Rao",
                "email": "asha.rao@example.com",
                "role": "doctor",
                "center_id": "center_123",
            }
        }


class Doctor(Document, TimestampMixin):
    """Legacy doctor record, still referenced by older test requests."""
    
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    center_id: Optional[str] = None
    is_deleted: bool = False
    
    class Settings:
        name = "doctors"
        use_state_management = True


class Center(Document, TimestampMixin):
    """Clinic center (tenant)."""
    
    name: str
    code: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    
    class Settings:
        name = "centers"
        use_state_management = True


class Patient(Document, TimestampMixin):
    """Patient registered at a center."""
    
    name: str
    gender: Optional[str] = None
    age: Optional[int] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    center_id: Indexed(str)
    is_deleted: bool = False
    
    class Settings:
        name = "patients"
        use_state_management = True


class LabStaffRole(str, Enum):
    LAB_STAFF = "Lab Staff"
    TECHNICIAN = "Lab Technician"
    ASSISTANT = "Lab Assistant"
    MANAGER = "Lab Manager"


class LabStaff(Document, TimestampMixin):
    """Central lab staff member. Not tied to a center."""
    
    staff_name: str
    email: Indexed(EmailStr)
    phone: Optional[str] = None
    lab_id: str = "CENTRAL_LAB"
    role: LabStaffRole = LabStaffRole.LAB_STAFF
    is_active: bool = True
    is_deleted: bool = False
    
    class Settings:
        name = "labstaffs"
        use_state_management = True


class SuperAdminDoctor(Document, TimestampMixin):
    """Head office doctor who reviews test requests."""
    
    name: str
    email: Indexed(EmailStr)
    phone: Optional[str] = None
    specialization: Optional[str] = None
    status: str = "active"
    is_super_admin_staff: bool = True
    
    class Settings:
        name = "superadmindoctors"
        use_state_management = True


class Recipient(BaseModel):
    """Somebody a notification can be addressed to."""
    
    id: str
    name: str
    kind: ActorKind = ActorKind.USER
    center_id: Optional[str] = None
