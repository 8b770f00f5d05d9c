"""Authentication context extraction and app-user allow-list guards."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from resource_planner.core.config import get_settings
from resource_planner.core.logging import logger
from resource_planner.db.dependencies import get_db_session
from resource_planner.models.entities import AppUser, AppUserRole

WRITE_ROLES = {AppUserRole.ADMIN, AppUserRole.MEMBER}


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and the app-user allow-list."""

    user_id: UUID
    email: str
    display_name: str
    role: AppUserRole

    @property
    def is_admin(self) -> bool:
        return self.role == AppUserRole.ADMIN


@dataclass(frozen=True)
class _Identity:
    email: str
    display_name: str
    is_dev_principal: bool


def _resolve_identity(x_ms_email: str | None, x_ms_display_name: str | None) -> _Identity:
    if x_ms_email and x_ms_email.strip():
        email = x_ms_email.strip().lower()
        display_name = (x_ms_display_name or email).strip()
        return _Identity(email=email, display_name=display_name, is_dev_principal=False)

    settings = get_settings()
    if settings.auth_allow_dev_principal:
        return _Identity(
            email=settings.auth_dev_email.strip().lower(),
            display_name=settings.auth_dev_display_name.strip(),
            is_dev_principal=True,
        )

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity headers. Expected X-MS-EMAIL or enable development principal fallback.",
    )


def ensure_app_user(
    db: Session,
    *,
    email: str,
    role: AppUserRole = AppUserRole.MEMBER,
    name: str | None = None,
) -> AppUser:
    """Ensure an allow-listed user exists and return the persisted row.

    Utility exported for tests and seed helpers.
    """

    normalized_email = email.strip().lower()
    user = db.scalar(select(AppUser).where(AppUser.email == normalized_email))
    if user is None:
        user = AppUser(email=normalized_email, role=role, name=name)
        db.add(user)
    else:
        user.role = role
        if name is not None:
            user.name = name
    db.commit()
    db.refresh(user)
    return user


def get_current_user_context(
    x_ms_email: str | None = Header(default=None, alias="X-MS-EMAIL"),
    x_ms_display_name: str | None = Header(default=None, alias="X-MS-DISPLAY-NAME"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve the current request user against ``app_users``.

    Identity comes from trusted proxy headers. Users missing from the
    allow-list are rejected; the development principal is provisioned as an
    admin on first use.
    """

    identity = _resolve_identity(x_ms_email, x_ms_display_name)
    user = db.scalar(select(AppUser).where(AppUser.email == identity.email))

    if user is None:
        if not identity.is_dev_principal:
            logger.warning("Rejected request from unregistered user %s", identity.email)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. User is not registered for this application.",
            )
        user = ensure_app_user(
            db,
            email=identity.email,
            role=AppUserRole.ADMIN,
            name=identity.display_name,
        )

    return RequestUserContext(
        user_id=user.id,
        email=user.email,
        display_name=user.name or identity.display_name,
        role=user.role,
    )


def has_role(context: RequestUserContext, allowed_roles: set[AppUserRole]) -> bool:
    return context.role in allowed_roles


def require_roles(*roles: AppUserRole):
    """Dependency factory requiring at least one provided role."""

    allowed = set(roles)

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        if not has_role(context, allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this operation.",
            )
        return context

    return dependency
