from __future__ import annotations

import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy.orm import Session

from resource_planner.core.auth import (
    WRITE_ROLES,
    RequestUserContext,
    _resolve_identity,
    ensure_app_user,
    has_role,
)
from resource_planner.core.config import get_settings
from resource_planner.models.entities import AppUserRole


def _context(role: AppUserRole) -> RequestUserContext:
    return RequestUserContext(
        user_id=uuid.uuid4(),
        email="user@test.local",
        display_name="User",
        role=role,
    )


def test_has_role_matches_expected_roles() -> None:
    assert has_role(_context(AppUserRole.MEMBER), WRITE_ROLES) is True
    assert has_role(_context(AppUserRole.ADMIN), {AppUserRole.MEMBER}) is False
    assert _context(AppUserRole.ADMIN).is_admin is True
    assert _context(AppUserRole.MEMBER).is_admin is False


def test_identity_headers_are_normalized() -> None:
    identity = _resolve_identity("  Anna.Berg@Test.Local ", None)

    assert identity.email == "anna.berg@test.local"
    assert identity.display_name == "anna.berg@test.local"
    assert identity.is_dev_principal is False


def test_missing_headers_without_dev_principal_is_unauthorized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "auth_allow_dev_principal", False)

    with pytest.raises(HTTPException) as error:
        _resolve_identity(None, None)

    assert error.value.status_code == 401


def test_ensure_app_user_updates_existing_role(db_session: Session) -> None:
    first = ensure_app_user(db_session, email="Lead@Test.Local", role=AppUserRole.MEMBER)
    second = ensure_app_user(db_session, email="lead@test.local", role=AppUserRole.ADMIN, name="Lead")

    assert first.id == second.id
    assert second.email == "lead@test.local"
    assert second.role == AppUserRole.ADMIN
    assert second.name == "Lead"
