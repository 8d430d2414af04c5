# Directory Feature - Service

from typing import List, Optional
from beanie import PydanticObjectId
from bson.errors import InvalidId
from clinic_lab.features.auth.models import ActorKind
from clinic_lab.features.directory.models import (
    Center,
    Doctor,
    LabStaff,
    Patient,
    Recipient,
    SuperAdminDoctor,
    User,
    UserRole,
)
from clinic_lab.core.logging import logger
from clinic_lab.shared.exceptions import NotFoundException


def to_object_id(value: Optional[str]) -> Optional[PydanticObjectId]:
    """Parse a path/body id, returning None for anything that is not an ObjectId."""
    # ObjectId(None) would mint a fresh id
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


class DirectoryService:
    """
    Read-only view over the identity collections.

    The workflow depends on this interface only; where a person is stored
    (users vs. the legacy doctors collection) is decided here.
    """

    async def resolve_doctor(self, doctor_id: str) -> Recipient:
        """
        Resolve the requesting doctor.

        Doctors registered through the user module are looked up first, then
        the legacy doctors collection.
        """
        object_id = to_object_id(doctor_id)
        if object_id is None:
            raise NotFoundException("Doctor not found")

        user = await User.find_one(
            User.id == object_id,
            User.role == UserRole.DOCTOR,
            User.is_deleted == False
        )
        if user:
            return Recipient(id=str(user.id), name=user.name, center_id=user.center_id)

        doctor = await Doctor.find_one(Doctor.id == object_id, Doctor.is_deleted == False)
        if doctor:
            logger.debug(f"Doctor {doctor_id} resolved from legacy doctors collection")
            return Recipient(id=str(doctor.id), name=doctor.name, center_id=doctor.center_id)

        raise NotFoundException("Doctor not found")

    async def resolve_patient(self, patient_id: str) -> Patient:
        object_id = to_object_id(patient_id)
        patient = await Patient.get(object_id) if object_id else None
        if not patient or patient.is_deleted:
            raise NotFoundException("Patient not found")
        return patient

    async def get_center(self, center_id: Optional[str]) -> Optional[Center]:
        object_id = to_object_id(center_id)
        if object_id is None:
            return None
        return await Center.get(object_id)

    async def resolve_lab_staff(self, staff_id: str) -> Recipient:
        object_id = to_object_id(staff_id)
        staff = await LabStaff.get(object_id) if object_id else None
        if not staff or staff.is_deleted:
            raise NotFoundException("Lab staff not found")
        return Recipient(id=str(staff.id), name=staff.staff_name, kind=ActorKind.LAB_STAFF)

    # ==================== Recipient queries ====================

    @staticmethod
    def _users(users: List[User]) -> List[Recipient]:
        return [
            Recipient(id=str(user.id), name=user.name, center_id=user.center_id)
            for user in users
        ]

    async def superadmins(self) -> List[Recipient]:
        users = await User.find(
            User.role == UserRole.SUPERADMIN,
            User.is_super_admin_staff == True,
            User.is_deleted == False
        ).to_list()
        return self._users(users)

    async def superadmin_doctors(self) -> List[Recipient]:
        doctors = await SuperAdminDoctor.find(
            SuperAdminDoctor.status == "active",
            SuperAdminDoctor.is_super_admin_staff == True
        ).to_list()
        return [
            Recipient(id=str(doctor.id), name=doctor.name, kind=ActorKind.SUPERADMIN_DOCTOR)
            for doctor in doctors
        ]

    async def center_admins(self, center_id: Optional[str]) -> List[Recipient]:
        if not center_id:
            return []
        users = await User.find(
            User.role == UserRole.CENTER_ADMIN,
            User.center_id == center_id,
            User.is_deleted == False
        ).to_list()
        return self._users(users)

    async def center_receptionists(self, center_id: Optional[str]) -> List[Recipient]:
        if not center_id:
            return []
        users = await User.find(
            User.role == UserRole.RECEPTIONIST,
            User.center_id == center_id,
            User.status == "active",
            User.is_deleted == False
        ).to_list()
        return self._users(users)

    async def active_lab_staff(self) -> List[Recipient]:
        staff = await LabStaff.find(
            LabStaff.is_active == True,
            LabStaff.is_deleted == False
        ).to_list()
        return [
            Recipient(id=str(member.id), name=member.staff_name, kind=ActorKind.LAB_STAFF)
            for member in staff
        ]
