"""Settings API: tenant settings, role policies, view profiles, user overrides.

Every route acts on the caller's own tenant (taken from the token). Role
checks for mutations live in the services, so the HTTP layer only maps
their errors to status codes.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar
from uuid import UUID  # noqa: TC003 - FastAPI needs UUID at runtime for path params

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from erp.api.auth import require_user
from erp.permissions.errors import Forbidden, InvalidRequest, NotFound, PermissionsError
from erp.permissions.models import (
    EffectivePermissions,
    RolePolicy,
    UserOverride,
    UserPermissionsSummary,
    UserPermissionsView,
    ViewProfile,
)
from erp.permissions.service import PermissionService
from erp.settings.documents import (
    CompanyInfo,
    CompanyUpdate,
    GeneralSettingsUpdate,
    NotificationSettings,
    NotificationsUpdate,
    ViewSettingsUpdate,
)
from erp.settings.service import SettingsService
from erp.storage.repository import get_repository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings", tags=["settings"])

# Module-level dependency to satisfy B008 lint rule
_user = Depends(require_user)

T = TypeVar("T")

_STATUS_BY_ERROR: dict[type[PermissionsError], int] = {
    Forbidden: 403,
    NotFound: 404,
    InvalidRequest: 400,
}


def _get_service() -> PermissionService:
    return PermissionService(get_repository())


def _get_settings_service() -> SettingsService:
    return SettingsService(get_repository())


async def _call(awaitable: Awaitable[T]) -> T:
    """Await a service call, translating domain errors into HTTP errors."""
    try:
        return await awaitable
    except PermissionsError as e:
        status = _STATUS_BY_ERROR.get(type(e), 400)
        raise HTTPException(status_code=status, detail=e.message) from e


# ─── Request bodies ───────────────────────────────────────


class UpdatePermissionsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    roles: list[RolePolicy]


class UpdateViewProfilesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    profiles: list[ViewProfile]


class UpdateUserPermissionsRequest(UserOverride):
    model_config = ConfigDict(extra="forbid")

    user_id: UUID


# ─── Tenant settings ──────────────────────────────────────


@router.get("")
async def get_settings_document(user: dict[str, Any] = _user) -> dict[str, Any]:
    return await _call(_get_settings_service().get_settings(user["tenant_id"]))


@router.patch("/company")
async def update_company(data: CompanyUpdate, user: dict[str, Any] = _user) -> CompanyInfo:
    return await _call(_get_settings_service().update_company(user["tenant_id"], data))


@router.patch("/notifications")
async def update_notifications(
    data: NotificationsUpdate, user: dict[str, Any] = _user
) -> NotificationSettings:
    return await _call(_get_settings_service().update_notifications(user["tenant_id"], data))


@router.post("/notifications/test-email")
async def test_email_connection(user: dict[str, Any] = _user) -> dict[str, Any]:
    """Send a test e-mail to the caller using the tenant's SMTP settings."""
    recipient = user.get("sub") or ""
    return await _call(
        _get_settings_service().test_email_connection(user["tenant_id"], recipient)
    )


@router.patch("/view")
async def update_view_settings(
    data: ViewSettingsUpdate, user: dict[str, Any] = _user
) -> dict[str, Any]:
    return await _call(_get_settings_service().update_view_settings(user["tenant_id"], data))


@router.patch("/general")
async def update_general_settings(
    data: GeneralSettingsUpdate, user: dict[str, Any] = _user
) -> dict[str, Any]:
    return await _call(
        _get_settings_service().update_general_settings(
            user["tenant_id"], user.get("role"), data
        )
    )


# ─── Role policies ────────────────────────────────────────


@router.get("/permissions")
async def get_permissions(user: dict[str, Any] = _user) -> list[RolePolicy]:
    return await _call(_get_service().get_permissions(user["tenant_id"]))


@router.get("/permissions/user")
async def get_user_permissions(user: dict[str, Any] = _user) -> RolePolicy:
    """Role policy of the caller's role (unknown roles get VIEWER)."""
    return await _call(_get_service().get_user_permissions(user["tenant_id"], user.get("role")))


@router.get("/permissions/check")
async def check_permission(
    module: str = Query(...),
    action: str = Query(...),
    user: dict[str, Any] = _user,
) -> dict[str, Any]:
    allowed = await _call(
        _get_service().check_permission(user["tenant_id"], user.get("role"), module, action)
    )
    return {"has_permission": allowed, "module": module, "action": action}


@router.patch("/permissions")
async def update_permissions(
    data: UpdatePermissionsRequest, user: dict[str, Any] = _user
) -> dict[str, Any]:
    return await _call(
        _get_service().update_permissions(user["tenant_id"], user.get("role"), data.roles)
    )


@router.post("/permissions/reset")
async def reset_permissions(user: dict[str, Any] = _user) -> dict[str, Any]:
    return await _call(
        _get_service().reset_permissions_to_default(user["tenant_id"], user.get("role"))
    )


# ─── View profiles ────────────────────────────────────────


@router.get("/view-profiles")
async def get_view_profiles(user: dict[str, Any] = _user) -> list[ViewProfile]:
    return await _call(_get_service().get_view_profiles(user["tenant_id"]))


@router.patch("/view-profiles")
async def update_view_profiles(
    data: UpdateViewProfilesRequest, user: dict[str, Any] = _user
) -> dict[str, Any]:
    return await _call(
        _get_service().update_view_profiles(user["tenant_id"], user.get("role"), data.profiles)
    )


# ─── Per-user overrides ───────────────────────────────────


@router.get("/users-permissions")
async def get_all_users_with_permissions(
    user: dict[str, Any] = _user,
) -> list[UserPermissionsSummary]:
    return await _call(_get_service().get_all_users_with_permissions(user["tenant_id"]))


@router.get("/user-permissions/{user_id}")
async def get_user_individual_permissions(
    user_id: UUID, user: dict[str, Any] = _user
) -> UserPermissionsView:
    return await _call(
        _get_service().get_user_individual_permissions(user["tenant_id"], str(user_id))
    )


@router.patch("/user-permissions")
async def update_user_individual_permissions(
    data: UpdateUserPermissionsRequest, user: dict[str, Any] = _user
) -> dict[str, Any]:
    patch = UserOverride.model_validate(data.model_dump(exclude={"user_id"}))
    return await _call(
        _get_service().update_user_individual_permissions(
            user["tenant_id"], user.get("role"), str(data.user_id), patch
        )
    )


@router.post("/user-permissions/{user_id}/reset")
async def reset_user_permissions(user_id: UUID, user: dict[str, Any] = _user) -> dict[str, Any]:
    return await _call(
        _get_service().reset_user_permissions_to_default(
            user["tenant_id"], user.get("role"), str(user_id)
        )
    )


@router.get("/user-permissions/{user_id}/effective")
async def get_effective_user_permissions(
    user_id: UUID, user: dict[str, Any] = _user
) -> EffectivePermissions:
    return await _call(
        _get_service().get_effective_user_permissions(user["tenant_id"], str(user_id))
    )


@router.get("/my-permissions")
async def get_my_permissions(user: dict[str, Any] = _user) -> EffectivePermissions:
    return await _call(
        _get_service().get_effective_user_permissions(user["tenant_id"], user["user_id"])
    )
