"""Test tokens, role checks and center isolation."""

from datetime import timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from clinic_lab.core.security import create_access_token, decode_token
from clinic_lab.features.auth.dependencies import get_current_actor, require_roles
from clinic_lab.features.auth.models import Actor, ActorKind, LAB_ROLES, Role
from clinic_lab.features.auth.service import AuthService
from clinic_lab.shared.exceptions import CredentialsException, ForbiddenException


def _actor(role, center_id=None, kind=ActorKind.USER):
    return Actor(id="65a1f0c2e4b0a1b2c3d4e5f6", name="Someone", kind=kind, role=role, center_id=center_id)


async def test_token_round_trip():
    token = create_access_token({"sub": "65a1f0c2e4b0a1b2c3d4e5f6", "type": "lab_staff"})

    payload = decode_token(token)

    assert payload["sub"] == "65a1f0c2e4b0a1b2c3d4e5f6"
    assert payload["type"] == "lab_staff"


async def test_expired_or_tampered_token():
    expired = create_access_token({"sub": "x"}, expires_delta=timedelta(minutes=-5))

    assert decode_token(expired) is None
    assert decode_token("not.a.token") is None


async def test_invalid_token_is_rejected():
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="garbage")

    with pytest.raises(CredentialsException) as exc:
        await get_current_actor(credentials)
    assert exc.value.status_code == 401


async def test_token_with_unknown_kind_is_rejected():
    token = create_access_token({"sub": "65a1f0c2e4b0a1b2c3d4e5f6", "type": "robot"})

    with pytest.raises(CredentialsException):
        await get_current_actor(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token))


async def test_require_roles():
    checker = require_roles(*LAB_ROLES)

    lab = _actor(Role.LAB_STAFF, kind=ActorKind.LAB_STAFF)
    assert await checker(lab) is lab

    with pytest.raises(ForbiddenException):
        await checker(_actor(Role.DOCTOR, "center_1"))


async def test_center_access():
    """Global roles see every center; center staff only their own."""
    test_cases = [
        (_actor(Role.SUPERADMIN), "center_1", True),
        (_actor(Role.SUPERADMIN_DOCTOR, kind=ActorKind.SUPERADMIN_DOCTOR), "center_2", True),
        (_actor(Role.LAB_STAFF, kind=ActorKind.LAB_STAFF), "center_2", True),
        (_actor(Role.DOCTOR, "center_1"), "center_1", True),
        (_actor(Role.RECEPTIONIST, "center_1"), "center_2", False),
        (_actor(Role.CENTER_ADMIN, "center_1"), None, False),
    ]
    for actor, center_id, allowed in test_cases:
        assert actor.can_access_center(center_id) is allowed


async def test_center_staff_without_center():
    with pytest.raises(ForbiddenException) as exc:
        AuthService.ensure_center_access(_actor(Role.DOCTOR), "center_1")
    assert exc.value.detail == "Center ID is required for this operation"

    with pytest.raises(ForbiddenException) as exc:
        AuthService.ensure_center_access(_actor(Role.DOCTOR, "center_1"), "center_2")
    assert exc.value.detail == "Access denied: record belongs to another center"
