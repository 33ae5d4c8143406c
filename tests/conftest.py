"""Shared pytest fixtures for all test types."""

from __future__ import annotations

import pytest

from erp.permissions.service import PermissionService
from erp.settings.service import SettingsService
from erp.storage.repository import TenantRecord, UserRecord
from tests.unit.mocks.mock_repository import TENANT_ID, InMemorySettingsRepository


@pytest.fixture
def repository() -> InMemorySettingsRepository:
    """A repository with one tenant and one user per role, no overrides."""
    repo = InMemorySettingsRepository()
    repo.add_tenant(TenantRecord(id=TENANT_ID, name="Loja Centro", cnpj="12.345.678/0001-90"))
    for role in ("ADMIN", "MANAGER", "SELLER", "VIEWER"):
        repo.add_user(
            UserRecord(
                id=f"u-{role.lower()}",
                tenant_id=TENANT_ID,
                role=role,
                name=role.title(),
                email=f"{role.lower()}@loja.com.br",
                status="ACTIVE",
            )
        )
    return repo


@pytest.fixture
def permission_service(repository: InMemorySettingsRepository) -> PermissionService:
    return PermissionService(repository)


@pytest.fixture
def settings_service(repository: InMemorySettingsRepository) -> SettingsService:
    return SettingsService(repository)
