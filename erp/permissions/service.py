"""Permission service: the entry points the HTTP layer and route guards call.

Every call reads the current tenant/user blobs; nothing is cached between
calls, so a write is visible to the very next resolution.
"""

from __future__ import annotations

import logging
from typing import Any

from erp.monitoring.metrics import permission_checks_total, permission_resolutions_total
from erp.permissions.models import (
    EffectivePermissions,
    RolePolicy,
    UserOverride,
    UserPermissionsSummary,
    UserPermissionsView,
    ViewProfile,
)
from erp.permissions.resolver import (
    find_view_profile,
    has_capability,
    resolve_effective_permissions,
    resolve_role_fields,
)
from erp.permissions.stores import TenantPolicyStore, UserOverrideStore, parse_override
from erp.storage.repository import SettingsRepository

logger = logging.getLogger(__name__)


class PermissionService:
    """Role policies, view profiles, user overrides and their resolution."""

    def __init__(self, repository: SettingsRepository) -> None:
        self.policies = TenantPolicyStore(repository)
        self.overrides = UserOverrideStore(repository)
        self._repo = repository

    # ── Role policies ────────────────────────────────────────

    async def get_permissions(self, tenant_id: str) -> list[RolePolicy]:
        return await self.policies.get_role_policies(tenant_id)

    async def get_user_permissions(self, tenant_id: str, role: str | None) -> RolePolicy:
        return await self.policies.get_role_policy(tenant_id, role)

    async def check_permission(
        self, tenant_id: str, role: str | None, module: str, action: str
    ) -> bool:
        """Role-only capability check (ignores per-user overrides)."""
        policy = await self.policies.get_role_policy(tenant_id, role)
        return has_capability(policy.permissions, module, action)

    async def update_permissions(
        self, tenant_id: str, actor_role: str | None, policies: list[RolePolicy]
    ) -> dict[str, Any]:
        stored = await self.policies.set_role_policies(tenant_id, actor_role, policies)
        return {"message": "Permissions updated", "permissions": stored}

    async def reset_permissions_to_default(
        self, tenant_id: str, actor_role: str | None
    ) -> dict[str, Any]:
        stored = await self.policies.reset_role_policies(tenant_id, actor_role)
        return {"message": "Permissions reset to default", "permissions": stored}

    # ── View profiles ────────────────────────────────────────

    async def get_view_profiles(self, tenant_id: str) -> list[ViewProfile]:
        return await self.policies.get_view_profiles(tenant_id)

    async def update_view_profiles(
        self, tenant_id: str, actor_role: str | None, profiles: list[ViewProfile]
    ) -> dict[str, Any]:
        stored = await self.policies.set_view_profiles(tenant_id, actor_role, profiles)
        return {"message": "View profiles updated", "view_profiles": stored}

    # ── Per-user overrides ───────────────────────────────────

    async def get_user_individual_permissions(
        self, tenant_id: str, user_id: str
    ) -> UserPermissionsView:
        user = await self.overrides.get_user(tenant_id, user_id)
        override = parse_override(user.settings)
        profiles = await self.policies.get_view_profiles(tenant_id)

        return UserPermissionsView(
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            user_role=user.role or "",
            use_custom_permissions=bool(override.use_custom_permissions),
            custom_permissions=override.custom_permissions,
            **resolve_role_fields(user.role, override, profiles),
        )

    async def update_user_individual_permissions(
        self, tenant_id: str, actor_role: str | None, user_id: str, patch: UserOverride
    ) -> dict[str, Any]:
        updated = await self.overrides.set_override(tenant_id, actor_role, user_id, patch)
        return {
            "message": "User permissions updated",
            "user_id": user_id,
            "permissions": updated,
        }

    async def reset_user_permissions_to_default(
        self, tenant_id: str, actor_role: str | None, user_id: str
    ) -> dict[str, Any]:
        reset = await self.overrides.reset_override(tenant_id, actor_role, user_id)
        return {
            "message": "User permissions reset to role default",
            "user_id": user_id,
            "view_profile": reset.view_profile,
        }

    async def get_all_users_with_permissions(self, tenant_id: str) -> list[UserPermissionsSummary]:
        users = await self._repo.list_users(tenant_id)
        profiles = await self.policies.get_view_profiles(tenant_id)

        rows: list[UserPermissionsSummary] = []
        for user in users:
            override = parse_override(user.settings)
            fields = resolve_role_fields(user.role, override, profiles)
            profile = find_view_profile(profiles, fields["view_profile"])
            rows.append(
                UserPermissionsSummary(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    role=user.role or "",
                    status=user.status,
                    view_profile=fields["view_profile"],
                    view_profile_name=profile.display_name,
                    use_custom_permissions=bool(override.use_custom_permissions),
                    allowed_modules=fields["allowed_modules"],
                )
            )
        return rows

    # ── Resolution ───────────────────────────────────────────

    async def get_effective_user_permissions(
        self, tenant_id: str, user_id: str
    ) -> EffectivePermissions:
        user = await self.overrides.get_user(tenant_id, user_id)
        override = parse_override(user.settings)
        role_policy = await self.policies.get_role_policy(tenant_id, user.role)
        profiles = await self.policies.get_view_profiles(tenant_id)

        result = resolve_effective_permissions(user.role, override, role_policy, profiles)
        permission_resolutions_total.labels(source=result.source).inc()
        return result

    async def has_capability(self, tenant_id: str, user_id: str, module: str, action: str) -> bool:
        """Capability check against the user's effective permissions.

        Unknown modules/actions yield False; a missing user raises NotFound.
        """
        effective = await self.get_effective_user_permissions(tenant_id, user_id)
        allowed = has_capability(effective.permissions, module, action)
        permission_checks_total.labels(result="allowed" if allowed else "denied").inc()
        if not allowed:
            logger.debug(
                "Capability denied: tenant=%s user=%s %s:%s", tenant_id, user_id, module, action
            )
        return allowed
