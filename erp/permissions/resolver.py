"""Effective permission resolution.

Pure functions: given a user's role, their override blob and the tenant's
role policy / view profiles, compute what the user may do. Nothing here
touches storage or caches results; callers load fresh inputs per request.
"""

from __future__ import annotations

from typing import Any

from erp.permissions.defaults import (
    FALLBACK_PROFILE,
    default_view_profile,
    default_view_profile_for_role,
)
from erp.permissions.models import (
    EffectivePermissions,
    ModuleCapability,
    Role,
    RolePolicy,
    UserOverride,
    ViewProfile,
)

DEFAULT_PAGE = "/dashboard"
DEFAULT_MAX_DISCOUNT_PERCENT = 15.0

_REFUND_ROLES = frozenset({Role.ADMIN.value, Role.MANAGER.value})


def find_view_profile(profiles: list[ViewProfile], profile_id: str | None) -> ViewProfile:
    """Look up `profile_id` in a tenant's profiles.

    Falls back to the tenant's `viewer` profile, then to the built-in one.
    """
    for profile in profiles:
        if profile.profile == profile_id:
            return profile
    for profile in profiles:
        if profile.profile == FALLBACK_PROFILE:
            return profile
    return default_view_profile(FALLBACK_PROFILE)


def uses_custom_permissions(override: UserOverride) -> bool:
    return bool(override.use_custom_permissions) and override.custom_permissions is not None


def resolve_effective_permissions(
    role: str | None,
    override: UserOverride,
    role_policy: RolePolicy,
    view_profiles: list[ViewProfile],
) -> EffectivePermissions:
    """Merge role policy, view profile and user override into one result.

    Custom mode is self-contained: nothing is inherited from the role,
    missing fields take fixed literal defaults.
    """
    o = override
    if uses_custom_permissions(o):
        return EffectivePermissions(
            source="custom",
            permissions=[c.model_copy() for c in o.custom_permissions or []],
            view_profile=o.view_profile or "custom",
            allowed_modules=list(o.allowed_modules) if o.allowed_modules is not None else [],
            default_page=o.default_page or DEFAULT_PAGE,
            can_apply_discounts=(
                o.can_apply_discounts if o.can_apply_discounts is not None else True
            ),
            max_discount_percent=(
                o.max_discount_percent
                if o.max_discount_percent is not None
                else DEFAULT_MAX_DISCOUNT_PERCENT
            ),
            can_process_refunds=(
                o.can_process_refunds if o.can_process_refunds is not None else False
            ),
            can_access_reports=o.can_access_reports if o.can_access_reports is not None else True,
            can_export_data=o.can_export_data if o.can_export_data is not None else True,
        )

    return EffectivePermissions(
        source="role",
        permissions=[c.model_copy() for c in role_policy.permissions],
        **resolve_role_fields(role, o, view_profiles),
    )


def resolve_role_fields(
    role: str | None, override: UserOverride, view_profiles: list[ViewProfile]
) -> dict[str, Any]:
    """Role-mode view and flag fields: the override where set, else role defaults.

    Only VIEWER loses reports/export by default; any other role, including
    an unrecognized one, keeps them.
    """
    o = override
    view_profile_id = o.view_profile or default_view_profile_for_role(role)
    profile = find_view_profile(view_profiles, view_profile_id)
    not_viewer = role != Role.VIEWER.value

    return {
        "view_profile": view_profile_id,
        "allowed_modules": list(
            o.allowed_modules if o.allowed_modules is not None else profile.allowed_modules
        ),
        "default_page": o.default_page or profile.default_page or DEFAULT_PAGE,
        "can_apply_discounts": o.can_apply_discounts if o.can_apply_discounts is not None else True,
        "max_discount_percent": (
            o.max_discount_percent
            if o.max_discount_percent is not None
            else DEFAULT_MAX_DISCOUNT_PERCENT
        ),
        "can_process_refunds": (
            o.can_process_refunds if o.can_process_refunds is not None else role in _REFUND_ROLES
        ),
        "can_access_reports": (
            o.can_access_reports if o.can_access_reports is not None else not_viewer
        ),
        "can_export_data": o.can_export_data if o.can_export_data is not None else not_viewer,
    }


def find_capability(permissions: list[ModuleCapability], module: str) -> ModuleCapability | None:
    for capability in permissions:
        if capability.module == module:
            return capability
    return None


def has_capability(permissions: list[ModuleCapability], module: str, action: str) -> bool:
    """True only if `module` is listed and its `action` flag is set.

    Unknown modules and unknown actions are denied; this never raises.
    """
    capability = find_capability(permissions, module)
    if capability is None:
        return False
    return capability.allows(action)
