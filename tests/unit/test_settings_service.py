"""Unit tests for SettingsService (company, notifications, view, general)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from erp.permissions.errors import Forbidden, InvalidRequest, NotFound
from erp.settings.documents import (
    CompanyUpdate,
    GeneralSettingsUpdate,
    NotificationsUpdate,
    ViewSettingsUpdate,
)
from erp.settings.service import SettingsService
from tests.unit.mocks.mock_repository import TENANT_ID, InMemorySettingsRepository


class TestGetSettings:
    @pytest.mark.asyncio
    async def test_defaults_and_tenant_fallbacks(self, settings_service: SettingsService) -> None:
        result = await settings_service.get_settings(TENANT_ID)

        assert result["company"].name == "Loja Centro"
        assert result["company"].document == "12.345.678/0001-90"
        assert result["notifications"].smtp_port == 587
        assert len(result["permissions"]) == 4
        assert result["view_settings"].items_per_page == 20
        assert result["general_settings"].max_discount_percent == 15

    @pytest.mark.asyncio
    async def test_secrets_never_returned(
        self, settings_service: SettingsService, repository: InMemorySettingsRepository
    ) -> None:
        repository.tenants[TENANT_ID].settings = {
            "notifications": {"smtp_password": "s3cret", "evolution_api_key": "k"}
        }
        result = await settings_service.get_settings(TENANT_ID)
        assert result["notifications"].smtp_password == ""
        assert result["notifications"].evolution_api_key == ""

    @pytest.mark.asyncio
    async def test_missing_tenant_gets_defaults(self, settings_service: SettingsService) -> None:
        result = await settings_service.get_settings("missing")
        assert result["company"].name == ""


class TestCompany:
    @pytest.mark.asyncio
    async def test_company_replaced_as_a_whole(
        self, settings_service: SettingsService, repository: InMemorySettingsRepository
    ) -> None:
        await settings_service.update_company(
            TENANT_ID, CompanyUpdate(name="Loja Nova", city="Campinas")
        )
        company = await settings_service.update_company(TENANT_ID, CompanyUpdate(name="Loja 2"))

        assert company.city == ""
        stored = repository.tenants[TENANT_ID].settings or {}
        assert stored["company"]["name"] == "Loja 2"

    @pytest.mark.asyncio
    async def test_company_update_for_missing_tenant(
        self, settings_service: SettingsService
    ) -> None:
        with pytest.raises(NotFound):
            await settings_service.update_company("missing", CompanyUpdate(name="X"))


class TestNotifications:
    @pytest.mark.asyncio
    async def test_blank_password_keeps_stored_secret(
        self, settings_service: SettingsService, repository: InMemorySettingsRepository
    ) -> None:
        await settings_service.update_notifications(
            TENANT_ID, NotificationsUpdate(smtp_host="smtp.a.com", smtp_password="s3cret")
        )
        returned = await settings_service.update_notifications(
            TENANT_ID, NotificationsUpdate(smtp_port=465, smtp_password="")
        )

        assert returned.smtp_password == ""
        stored = (repository.tenants[TENANT_ID].settings or {})["notifications"]
        assert stored["smtp_password"] == "s3cret"
        assert stored["smtp_host"] == "smtp.a.com"
        assert stored["smtp_port"] == 465


class TestViewAndGeneral:
    @pytest.mark.asyncio
    async def test_view_settings_partial_merge(self, settings_service: SettingsService) -> None:
        await settings_service.update_view_settings(TENANT_ID, ViewSettingsUpdate(dark_mode=True))
        result = await settings_service.update_view_settings(
            TENANT_ID, ViewSettingsUpdate(items_per_page=50)
        )
        assert result["view_settings"].dark_mode is True
        assert result["view_settings"].items_per_page == 50

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["ADMIN", "MANAGER"])
    async def test_general_settings_editors(
        self, settings_service: SettingsService, role: str
    ) -> None:
        result = await settings_service.update_general_settings(
            TENANT_ID, role, GeneralSettingsUpdate(warranty_days=180)
        )
        assert result["general_settings"].warranty_days == 180
        assert result["general_settings"].low_stock_threshold == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["SELLER", "VIEWER", None])
    async def test_general_settings_rejected(
        self,
        settings_service: SettingsService,
        repository: InMemorySettingsRepository,
        role: str | None,
    ) -> None:
        with pytest.raises(Forbidden):
            await settings_service.update_general_settings(
                TENANT_ID, role, GeneralSettingsUpdate(warranty_days=0)
            )
        assert repository.tenant_writes == 0


class TestEmailConnection:
    @pytest.mark.asyncio
    @patch("erp.settings.service.send_test_email", new_callable=AsyncMock)
    async def test_uses_stored_smtp_settings(
        self,
        mock_send: AsyncMock,
        settings_service: SettingsService,
        repository: InMemorySettingsRepository,
    ) -> None:
        repository.tenants[TENANT_ID].settings = {
            "notifications": {"smtp_host": "smtp.a.com", "smtp_user": "u", "smtp_password": "p"}
        }
        result = await settings_service.test_email_connection(TENANT_ID, "dono@loja.com.br")

        assert result["success"] is True
        smtp, company, recipient = mock_send.call_args.args
        assert smtp.smtp_password == "p"
        assert company == "Loja Centro"
        assert recipient == "dono@loja.com.br"

    @pytest.mark.asyncio
    async def test_unconfigured_smtp(self, settings_service: SettingsService) -> None:
        with pytest.raises(InvalidRequest):
            await settings_service.test_email_connection(TENANT_ID, "dono@loja.com.br")
