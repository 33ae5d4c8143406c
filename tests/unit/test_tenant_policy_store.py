"""Unit tests for TenantPolicyStore (whole-list role policies / view profiles)."""

from __future__ import annotations

import pytest

from erp.permissions.defaults import default_role_policies, default_view_profiles
from erp.permissions.errors import Forbidden, NotFound
from erp.permissions.models import ModuleCapability, RolePolicy, ViewProfile
from erp.permissions.stores import PERMISSIONS_KEY, VIEW_PROFILES_KEY, TenantPolicyStore
from erp.storage.repository import TenantRecord
from tests.unit.mocks.mock_repository import TENANT_ID, InMemorySettingsRepository


def _seller_policy(**flags: bool) -> RolePolicy:
    return RolePolicy(
        role="SELLER",
        display_name="Vendedor",
        hierarchy_level=3,
        permissions=[ModuleCapability(module="vendas", **flags)],
    )


class TestReads:
    @pytest.mark.asyncio
    async def test_defaults_when_nothing_stored(
        self, repository: InMemorySettingsRepository
    ) -> None:
        store = TenantPolicyStore(repository)
        assert await store.get_role_policies(TENANT_ID) == default_role_policies()
        assert await store.get_view_profiles(TENANT_ID) == default_view_profiles()

    @pytest.mark.asyncio
    async def test_defaults_for_unknown_tenant(
        self, repository: InMemorySettingsRepository
    ) -> None:
        store = TenantPolicyStore(repository)
        assert await store.get_role_policies("missing") == default_role_policies()

    @pytest.mark.asyncio
    async def test_malformed_blob_falls_back_to_defaults(
        self, repository: InMemorySettingsRepository
    ) -> None:
        repository.tenants[TENANT_ID].settings = {PERMISSIONS_KEY: [{"role": "X"}]}
        store = TenantPolicyStore(repository)
        assert await store.get_role_policies(TENANT_ID) == default_role_policies()

    @pytest.mark.asyncio
    async def test_role_missing_from_tenant_list_uses_builtin(
        self, repository: InMemorySettingsRepository
    ) -> None:
        repository.tenants[TENANT_ID].settings = {
            PERMISSIONS_KEY: [_seller_policy(view=True).model_dump()]
        }
        store = TenantPolicyStore(repository)
        manager = await store.get_role_policy(TENANT_ID, "MANAGER")
        assert manager.display_name == "Gerente"
        seller = await store.get_role_policy(TENANT_ID, "SELLER")
        assert [c.module for c in seller.permissions] == ["vendas"]

    @pytest.mark.asyncio
    async def test_unknown_role_gets_viewer(self, repository: InMemorySettingsRepository) -> None:
        store = TenantPolicyStore(repository)
        assert (await store.get_role_policy(TENANT_ID, "OWNER")).role == "VIEWER"


class TestWrites:
    @pytest.mark.asyncio
    async def test_admin_replaces_whole_list(
        self, repository: InMemorySettingsRepository
    ) -> None:
        store = TenantPolicyStore(repository)
        await store.set_role_policies(TENANT_ID, "ADMIN", [_seller_policy(view=True, edit=True)])

        stored = await store.get_role_policies(TENANT_ID)
        assert len(stored) == 1
        assert stored[0].permissions[0].edit is True

    @pytest.mark.asyncio
    async def test_replace_keeps_other_settings_keys(
        self, repository: InMemorySettingsRepository
    ) -> None:
        repository.tenants[TENANT_ID].settings = {"company": {"name": "Loja"}}
        store = TenantPolicyStore(repository)
        await store.set_view_profiles(
            TENANT_ID, "ADMIN", [ViewProfile(profile="viewer", display_name="V")]
        )
        settings = repository.tenants[TENANT_ID].settings or {}
        assert settings["company"] == {"name": "Loja"}
        assert settings[VIEW_PROFILES_KEY][0]["profile"] == "viewer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["MANAGER", "SELLER", "VIEWER", None])
    async def test_non_admin_rejected_without_write(
        self, repository: InMemorySettingsRepository, role: str | None
    ) -> None:
        store = TenantPolicyStore(repository)
        with pytest.raises(Forbidden):
            await store.set_role_policies(TENANT_ID, role, [_seller_policy()])
        with pytest.raises(Forbidden):
            await store.reset_role_policies(TENANT_ID, role)
        with pytest.raises(Forbidden):
            await store.set_view_profiles(TENANT_ID, role, [])
        assert repository.tenant_writes == 0

    @pytest.mark.asyncio
    async def test_reset_is_idempotent(self, repository: InMemorySettingsRepository) -> None:
        store = TenantPolicyStore(repository)
        await store.set_role_policies(TENANT_ID, "ADMIN", [_seller_policy()])

        await store.reset_role_policies(TENANT_ID, "ADMIN")
        first = await store.get_role_policies(TENANT_ID)
        await store.reset_role_policies(TENANT_ID, "ADMIN")
        second = await store.get_role_policies(TENANT_ID)

        assert first == second == default_role_policies()

    @pytest.mark.asyncio
    async def test_write_to_missing_tenant(self, repository: InMemorySettingsRepository) -> None:
        store = TenantPolicyStore(repository)
        with pytest.raises(NotFound):
            await store.set_role_policies("missing", "ADMIN", [_seller_policy()])

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, repository: InMemorySettingsRepository) -> None:
        repository.add_tenant(TenantRecord(id="tenant-2", name="Filial"))
        store = TenantPolicyStore(repository)
        await store.set_role_policies(TENANT_ID, "ADMIN", [_seller_policy()])
        assert await store.get_role_policies("tenant-2") == default_role_policies()
