"""Data models for role policies, view profiles and per-user overrides.

All models double as the JSON shape persisted in the `settings` JSONB
columns of `tenants` and `users`.
"""

from __future__ import annotations

import enum
from typing import Literal

from pydantic import BaseModel, Field


class Module(enum.StrEnum):
    """ERP modules that carry capabilities. Values are the UI route slugs."""

    DASHBOARD = "dashboard"
    PDV = "pdv"
    SALES = "vendas"
    PRODUCTS = "produtos"
    CATEGORIES = "categorias"
    CUSTOMERS = "clientes"
    SERVICE_ORDERS = "ordens-servico"
    FINANCIAL = "financeiro"
    INVOICES = "notas"
    USERS = "usuarios"
    SETTINGS = "configuracoes"


class Action(enum.StrEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"


class Role(enum.StrEnum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SELLER = "SELLER"
    VIEWER = "VIEWER"


ALL_MODULES: list[str] = [m.value for m in Module]
ALL_ACTIONS: list[str] = [a.value for a in Action]


class ModuleCapability(BaseModel):
    """Five action flags for one module.

    `module` stays a plain string so tenant blobs with modules this build
    does not know still load; such entries are simply never consulted.
    """

    module: str
    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    export: bool = False

    def allows(self, action: str) -> bool:
        if action not in ALL_ACTIONS:
            return False
        return getattr(self, action) is True


class RolePolicy(BaseModel):
    role: str
    display_name: str
    hierarchy_level: int = Field(ge=1, le=4)
    permissions: list[ModuleCapability] = []


class ViewProfile(BaseModel):
    profile: str
    display_name: str
    description: str = ""
    allowed_modules: list[str] = []
    default_page: str = "/dashboard"


class UserOverride(BaseModel):
    """Per-user override blob. `None` on any field means "inherit"."""

    view_profile: str | None = None
    use_custom_permissions: bool | None = None
    custom_permissions: list[ModuleCapability] | None = None
    allowed_modules: list[str] | None = None
    default_page: str | None = None
    can_apply_discounts: bool | None = None
    max_discount_percent: float | None = Field(default=None, ge=0, le=100)
    can_process_refunds: bool | None = None
    can_access_reports: bool | None = None
    can_export_data: bool | None = None

    def merged_with(self, patch: UserOverride) -> UserOverride:
        """Return a copy where every field set (non-None) in `patch` wins."""
        changes = patch.model_dump(exclude_none=True)
        return UserOverride.model_validate({**self.model_dump(), **changes})


class EffectivePermissions(BaseModel):
    """Resolved permissions for one user at one point in time. Never persisted."""

    source: Literal["custom", "role"]
    permissions: list[ModuleCapability]
    view_profile: str
    allowed_modules: list[str]
    default_page: str
    can_apply_discounts: bool
    max_discount_percent: float
    can_process_refunds: bool
    can_access_reports: bool
    can_export_data: bool


class UserPermissionsView(BaseModel):
    """Override as shown on the per-user permissions screen."""

    user_id: str
    user_name: str
    user_email: str
    user_role: str
    view_profile: str
    use_custom_permissions: bool
    custom_permissions: list[ModuleCapability] | None
    allowed_modules: list[str]
    default_page: str
    can_apply_discounts: bool
    max_discount_percent: float
    can_process_refunds: bool
    can_access_reports: bool
    can_export_data: bool


class UserPermissionsSummary(BaseModel):
    """One row of the tenant-wide users/permissions listing."""

    id: str
    name: str
    email: str
    role: str
    status: str | None
    view_profile: str
    view_profile_name: str
    use_custom_permissions: bool
    allowed_modules: list[str]
