from typing import Optional
from clinic_lab.features.auth.models import Actor, ActorKind, Role
from clinic_lab.features.directory.models import LabStaff, SuperAdminDoctor, User
from clinic_lab.features.directory.service import to_object_id
from clinic_lab.core.logging import logger
from clinic_lab.shared.exceptions import ForbiddenException


class AuthService:
    """Maps a verified token subject onto the collection it belongs to."""

    @staticmethod
    async def resolve_actor(kind: ActorKind, actor_id: str) -> Optional[Actor]:
        """
        Look up the caller named by a token.

        Returns None when the identity is unknown, deleted or deactivated.
        """
        object_id = to_object_id(actor_id)
        if object_id is None:
            return None

        if kind == ActorKind.LAB_STAFF:
            staff = await LabStaff.get(object_id)
            if not staff or staff.is_deleted or not staff.is_active:
                return None
            return Actor(
                id=str(staff.id),
                name=staff.staff_name,
                kind=kind,
                role=Role.LAB_STAFF,
            )

        if kind == ActorKind.SUPERADMIN_DOCTOR:
            doctor = await SuperAdminDoctor.get(object_id)
            if not doctor or doctor.status != "active":
                return None
            return Actor(
                id=str(doctor.id),
                name=doctor.name,
                kind=kind,
                role=Role.SUPERADMIN_DOCTOR,
                is_super_admin_staff=True,
            )

        user = await User.get(object_id)
        if not user or user.is_deleted or user.status != "active":
            return None

        logger.debug(f"Resolved {user.role.value} {user.id} for center {user.center_id}")
        return Actor(
            id=str(user.id),
            name=user.name,
            kind=ActorKind.USER,
            role=Role(user.role.value),
            center_id=user.center_id,
            is_super_admin_staff=user.is_super_admin_staff,
        )

    @staticmethod
    def ensure_center_access(actor: Actor, center_id: Optional[str]) -> None:
        """
        Center isolation.

        Superadmins, superadmin doctors and central lab staff act on every
        center; everybody else needs a center and may only touch its records.
        """
        if not actor.is_global and not actor.center_id:
            raise ForbiddenException("Center ID is required for this operation")
        if not actor.can_access_center(center_id):
            logger.warning(f"{actor.role.value} {actor.id} denied access to center {center_id}")
            raise ForbiddenException("Access denied: record belongs to another center")
