"""Tenant settings: company info, notifications, view and general settings."""

from __future__ import annotations

import logging
from typing import Any

from erp.permissions.errors import NotFound
from erp.permissions.models import Role
from erp.permissions.stores import TenantPolicyStore, deny
from erp.settings import documents
from erp.settings.documents import (
    CompanyInfo,
    CompanyUpdate,
    GeneralSettings,
    GeneralSettingsUpdate,
    NotificationSettings,
    NotificationsUpdate,
    ViewSettings,
    ViewSettingsUpdate,
)
from erp.settings.mailer import send_test_email
from erp.storage.repository import SettingsRepository

logger = logging.getLogger(__name__)

_GENERAL_EDITORS = frozenset({Role.ADMIN.value, Role.MANAGER.value})


class SettingsService:
    """Reads and updates the non-permission parts of `tenants.settings`."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repo = repository
        self._policies = TenantPolicyStore(repository)

    async def get_settings(self, tenant_id: str) -> dict[str, Any]:
        tenant = await self._repo.load_tenant(tenant_id)
        settings = dict(tenant.settings or {}) if tenant else {}

        return {
            "company": documents.read_company(settings, tenant),
            "notifications": documents.public_notifications(
                documents.read_notifications(settings)
            ),
            "permissions": await self._policies.get_role_policies(tenant_id),
            "view_settings": documents.read_view_settings(settings),
            "general_settings": documents.read_general_settings(settings),
        }

    async def update_company(self, tenant_id: str, update: CompanyUpdate) -> CompanyInfo:
        company = documents.company_from_update(update)
        await self._write(tenant_id, documents.COMPANY_KEY, company.model_dump())
        logger.info("Company info updated for tenant %s", tenant_id)
        return company

    async def update_notifications(
        self, tenant_id: str, update: NotificationsUpdate
    ) -> NotificationSettings:
        settings = await self._load(tenant_id)
        merged = documents.merge_notifications(documents.read_notifications(settings), update)
        settings[documents.NOTIFICATIONS_KEY] = merged.model_dump()
        await self._save(tenant_id, settings)
        logger.info("Notification settings updated for tenant %s", tenant_id)
        return documents.public_notifications(merged)

    async def update_view_settings(
        self, tenant_id: str, update: ViewSettingsUpdate
    ) -> dict[str, Any]:
        settings = await self._load(tenant_id)
        merged: ViewSettings = documents.merge_partial(
            documents.read_view_settings(settings), update
        )
        settings[documents.VIEW_SETTINGS_KEY] = merged.model_dump()
        await self._save(tenant_id, settings)
        return {"message": "View settings updated", "view_settings": merged}

    async def update_general_settings(
        self, tenant_id: str, actor_role: str | None, update: GeneralSettingsUpdate
    ) -> dict[str, Any]:
        if actor_role not in _GENERAL_EDITORS:
            raise deny(
                "update_general_settings",
                "Not allowed to change general settings",
                actor_role=actor_role,
            )
        settings = await self._load(tenant_id)
        merged: GeneralSettings = documents.merge_partial(
            documents.read_general_settings(settings), update
        )
        settings[documents.GENERAL_SETTINGS_KEY] = merged.model_dump()
        await self._save(tenant_id, settings)
        logger.info("General settings updated for tenant %s", tenant_id)
        return {"message": "General settings updated", "general_settings": merged}

    async def test_email_connection(self, tenant_id: str, recipient: str) -> dict[str, Any]:
        tenant = await self._repo.load_tenant(tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")
        smtp = documents.read_notifications(dict(tenant.settings or {}))
        await send_test_email(smtp, tenant.name, recipient)
        return {
            "success": True,
            "message": "Test e-mail sent. Check your inbox.",
        }

    async def _load(self, tenant_id: str) -> dict[str, Any]:
        tenant = await self._repo.load_tenant(tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")
        return dict(tenant.settings or {})

    async def _save(self, tenant_id: str, settings: dict[str, Any]) -> None:
        if not await self._repo.save_tenant_settings(tenant_id, settings):
            raise NotFound("Tenant not found")

    async def _write(self, tenant_id: str, key: str, value: Any) -> None:
        settings = await self._load(tenant_id)
        settings[key] = value
        await self._save(tenant_id, settings)
