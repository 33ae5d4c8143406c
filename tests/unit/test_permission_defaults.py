"""Unit tests for built-in role policies and view profiles."""

from __future__ import annotations

from erp.permissions.defaults import (
    DEFAULT_ROLE_POLICIES,
    default_role_policies,
    default_role_policy,
    default_view_profile,
    default_view_profile_for_role,
    default_view_profiles,
)
from erp.permissions.models import ALL_MODULES
from erp.permissions.resolver import has_capability


class TestDefaultRolePolicies:
    def test_four_roles_in_hierarchy_order(self) -> None:
        policies = default_role_policies()
        assert [p.role for p in policies] == ["ADMIN", "MANAGER", "SELLER", "VIEWER"]
        assert [p.hierarchy_level for p in policies] == [1, 2, 3, 4]

    def test_every_role_lists_every_module(self) -> None:
        for policy in default_role_policies():
            assert [c.module for c in policy.permissions] == ALL_MODULES

    def test_admin_has_everything(self) -> None:
        admin = default_role_policy("ADMIN")
        for module in ALL_MODULES:
            for action in ("view", "create", "edit", "delete", "export"):
                assert has_capability(admin.permissions, module, action)

    def test_manager_cannot_delete_sales(self) -> None:
        manager = default_role_policy("MANAGER")
        assert has_capability(manager.permissions, "vendas", "edit")
        assert not has_capability(manager.permissions, "vendas", "delete")
        assert has_capability(manager.permissions, "produtos", "delete")

    def test_manager_invoices_cannot_edit(self) -> None:
        manager = default_role_policy("MANAGER")
        assert has_capability(manager.permissions, "notas", "create")
        assert not has_capability(manager.permissions, "notas", "edit")

    def test_seller_has_no_financial_access(self) -> None:
        seller = default_role_policy("SELLER")
        assert not has_capability(seller.permissions, "financeiro", "view")
        assert has_capability(seller.permissions, "pdv", "create")

    def test_viewer_is_read_only(self) -> None:
        viewer = default_role_policy("VIEWER")
        assert has_capability(viewer.permissions, "financeiro", "view")
        assert not has_capability(viewer.permissions, "pdv", "view")
        for cap in viewer.permissions:
            assert not (cap.create or cap.edit or cap.delete or cap.export)

    def test_unknown_role_falls_back_to_viewer(self) -> None:
        assert default_role_policy("OWNER").role == "VIEWER"
        assert default_role_policy(None).role == "VIEWER"

    def test_copies_do_not_leak_into_defaults(self) -> None:
        policies = default_role_policies()
        policies[0].permissions[0].view = False
        policies.pop()
        assert DEFAULT_ROLE_POLICIES[0].permissions[0].view is True
        assert len(default_role_policies()) == 4


class TestDefaultViewProfiles:
    def test_seven_profiles(self) -> None:
        ids = [p.profile for p in default_view_profiles()]
        assert ids == ["full", "manager", "sales", "store", "financial", "viewer", "custom"]

    def test_manager_profile_excludes_settings(self) -> None:
        manager = default_view_profile("manager")
        assert "configuracoes" not in manager.allowed_modules
        assert "usuarios" in manager.allowed_modules

    def test_store_profile_lands_on_pdv(self) -> None:
        store = default_view_profile("store")
        assert store.default_page == "/dashboard/pdv"
        assert store.allowed_modules == ["pdv", "ordens-servico", "clientes"]

    def test_unknown_profile_falls_back_to_viewer(self) -> None:
        assert default_view_profile("nope").profile == "viewer"


class TestRoleToProfile:
    def test_mapping(self) -> None:
        assert default_view_profile_for_role("ADMIN") == "full"
        assert default_view_profile_for_role("MANAGER") == "manager"
        assert default_view_profile_for_role("SELLER") == "sales"
        assert default_view_profile_for_role("VIEWER") == "viewer"

    def test_unknown_and_missing_role(self) -> None:
        assert default_view_profile_for_role("OWNER") == "viewer"
        assert default_view_profile_for_role(None) == "viewer"
