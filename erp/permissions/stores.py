"""Tenant policy store and user override store.

Tenant role policies and view profiles are whole-list documents: a write
replaces the entire list. User overrides are field-level patches: a write
only touches the fields it carries.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from erp.monitoring.metrics import authorization_denied_total
from erp.permissions.defaults import (
    default_role_policies,
    default_role_policy,
    default_view_profile_for_role,
    default_view_profiles,
)
from erp.permissions.errors import Forbidden, NotFound
from erp.permissions.models import Role, RolePolicy, UserOverride, ViewProfile
from erp.storage.repository import SettingsRepository, UserRecord

logger = logging.getLogger(__name__)

PERMISSIONS_KEY = "permissions"
VIEW_PROFILES_KEY = "view_profiles"

_OVERRIDE_EDITORS = frozenset({Role.ADMIN.value, Role.MANAGER.value})


def deny(operation: str, message: str, **context: Any) -> Forbidden:
    authorization_denied_total.labels(operation=operation).inc()
    logger.warning("Forbidden %s: %s %s", operation, message, context)
    return Forbidden(message)


def require_admin(actor_role: str | None, operation: str, message: str) -> None:
    if actor_role != Role.ADMIN.value:
        raise deny(operation, message, actor_role=actor_role)


def _parse_list(raw: Any, model: type[RolePolicy] | type[ViewProfile]) -> list[Any] | None:
    """Parse a persisted list; None when absent or unreadable (=> use defaults)."""
    if not isinstance(raw, list):
        return None
    try:
        return [model.model_validate(item) for item in raw]
    except ValidationError:
        logger.warning("Ignoring malformed %s list in tenant settings", model.__name__)
        return None


class TenantPolicyStore:
    """Tenant-scoped role policies and view profiles with default fallback."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repo = repository

    async def get_role_policies(self, tenant_id: str) -> list[RolePolicy]:
        settings = await self._repo.load_tenant_settings(tenant_id)
        policies = _parse_list(settings.get(PERMISSIONS_KEY), RolePolicy)
        return policies if policies is not None else default_role_policies()

    async def get_role_policy(self, tenant_id: str, role: str | None) -> RolePolicy:
        """Tenant entry for `role`, else the built-in one (unknown role => VIEWER)."""
        for policy in await self.get_role_policies(tenant_id):
            if policy.role == role:
                return policy
        return default_role_policy(role)

    async def set_role_policies(
        self, tenant_id: str, actor_role: str | None, policies: list[RolePolicy]
    ) -> list[RolePolicy]:
        require_admin(
            actor_role, "update_permissions", "Only administrators can change permissions"
        )
        await self._replace(tenant_id, PERMISSIONS_KEY, policies)
        logger.info("Role policies replaced for tenant %s (%d roles)", tenant_id, len(policies))
        return policies

    async def reset_role_policies(self, tenant_id: str, actor_role: str | None) -> list[RolePolicy]:
        require_admin(
            actor_role, "reset_permissions", "Only administrators can reset permissions"
        )
        policies = default_role_policies()
        await self._replace(tenant_id, PERMISSIONS_KEY, policies)
        logger.info("Role policies reset to defaults for tenant %s", tenant_id)
        return policies

    async def get_view_profiles(self, tenant_id: str) -> list[ViewProfile]:
        settings = await self._repo.load_tenant_settings(tenant_id)
        profiles = _parse_list(settings.get(VIEW_PROFILES_KEY), ViewProfile)
        return profiles if profiles is not None else default_view_profiles()

    async def set_view_profiles(
        self, tenant_id: str, actor_role: str | None, profiles: list[ViewProfile]
    ) -> list[ViewProfile]:
        require_admin(
            actor_role, "update_view_profiles", "Only administrators can change view profiles"
        )
        await self._replace(tenant_id, VIEW_PROFILES_KEY, profiles)
        logger.info("View profiles replaced for tenant %s (%d profiles)", tenant_id, len(profiles))
        return profiles

    async def _replace(self, tenant_id: str, key: str, items: list[Any]) -> None:
        tenant = await self._repo.load_tenant(tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")
        settings = dict(tenant.settings or {})
        settings[key] = [item.model_dump() for item in items]
        if not await self._repo.save_tenant_settings(tenant_id, settings):
            raise NotFound("Tenant not found")


class UserOverrideStore:
    """Per-user override blobs, patched field by field."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repo = repository

    async def get_user(self, tenant_id: str, user_id: str) -> UserRecord:
        user = await self._repo.load_user(tenant_id, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def get_override(self, tenant_id: str, user_id: str) -> UserOverride:
        user = await self.get_user(tenant_id, user_id)
        return parse_override(user.settings)

    async def set_override(
        self, tenant_id: str, actor_role: str | None, user_id: str, patch: UserOverride
    ) -> UserOverride:
        user = await self._authorize(tenant_id, actor_role, user_id, "update_user_permissions")
        updated = parse_override(user.settings).merged_with(patch)
        await self._save(tenant_id, user, updated)
        logger.info(
            "User override updated: tenant=%s user=%s fields=%s",
            tenant_id,
            user_id,
            sorted(patch.model_dump(exclude_none=True)),
        )
        return updated

    async def reset_override(
        self, tenant_id: str, actor_role: str | None, user_id: str
    ) -> UserOverride:
        user = await self._authorize(tenant_id, actor_role, user_id, "reset_user_permissions")
        reset = UserOverride(
            view_profile=default_view_profile_for_role(user.role),
            use_custom_permissions=False,
        )
        await self._save(tenant_id, user, reset)
        logger.info("User override reset: tenant=%s user=%s", tenant_id, user_id)
        return reset

    async def _authorize(
        self, tenant_id: str, actor_role: str | None, user_id: str, operation: str
    ) -> UserRecord:
        if actor_role not in _OVERRIDE_EDITORS:
            raise deny(
                operation,
                "Not allowed to change user permissions",
                actor_role=actor_role,
            )

        user = await self.get_user(tenant_id, user_id)

        # Managers may edit anyone except administrators
        if actor_role == Role.MANAGER.value and user.role == Role.ADMIN.value:
            raise deny(
                operation,
                "Managers cannot change administrator permissions",
                user_id=user_id,
            )
        return user

    async def _save(self, tenant_id: str, user: UserRecord, override: UserOverride) -> None:
        if not await self._repo.save_user_settings(tenant_id, user.id, override.model_dump()):
            raise NotFound("User not found")


def parse_override(raw: dict[str, Any] | None) -> UserOverride:
    """Parse a stored override blob; an absent or unreadable blob inherits everything."""
    if not raw:
        return UserOverride()
    try:
        return UserOverride.model_validate(raw)
    except ValidationError:
        logger.warning("Ignoring malformed user override blob")
        return UserOverride()
