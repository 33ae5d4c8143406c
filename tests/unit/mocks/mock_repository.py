"""In-memory settings repository for unit tests."""

from __future__ import annotations

import copy
from typing import Any

from erp.storage.repository import SettingsRepository, TenantRecord, UserRecord

TENANT_ID = "tenant-1"


class InMemorySettingsRepository(SettingsRepository):
    """Dict-backed SettingsRepository.

    Blobs are deep-copied on the way in and out, like a real round trip
    through JSONB, so tests catch services that mutate what they loaded.

    Usage:
        repo = InMemorySettingsRepository()
        repo.add_tenant(TenantRecord(id="t1", name="Loja"))
        repo.add_user(UserRecord(id="u1", tenant_id="t1", role="SELLER"))
    """

    def __init__(self) -> None:
        self.tenants: dict[str, TenantRecord] = {}
        self.users: dict[str, UserRecord] = {}
        self.tenant_writes = 0
        self.user_writes = 0

    def add_tenant(self, tenant: TenantRecord) -> None:
        self.tenants[tenant.id] = tenant

    def add_user(self, user: UserRecord) -> None:
        self.users[user.id] = user

    async def load_tenant(self, tenant_id: str) -> TenantRecord | None:
        tenant = self.tenants.get(tenant_id)
        return copy.deepcopy(tenant) if tenant else None

    async def save_tenant_settings(self, tenant_id: str, settings: dict[str, Any]) -> bool:
        tenant = self.tenants.get(tenant_id)
        if tenant is None:
            return False
        tenant.settings = copy.deepcopy(settings)
        self.tenant_writes += 1
        return True

    async def load_user(self, tenant_id: str, user_id: str) -> UserRecord | None:
        user = self.users.get(user_id)
        if user is None or user.tenant_id != tenant_id:
            return None
        return copy.deepcopy(user)

    async def list_users(self, tenant_id: str) -> list[UserRecord]:
        return [
            copy.deepcopy(u)
            for u in sorted(self.users.values(), key=lambda u: u.name)
            if u.tenant_id == tenant_id
        ]

    async def save_user_settings(
        self, tenant_id: str, user_id: str, settings: dict[str, Any]
    ) -> bool:
        user = self.users.get(user_id)
        if user is None or user.tenant_id != tenant_id:
            return False
        user.settings = copy.deepcopy(settings)
        self.user_writes += 1
        return True
