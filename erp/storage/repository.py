"""Persistence for tenant and user settings blobs.

Tenants and users each carry one JSONB `settings` column. The permission
and settings services only ever read a whole blob and write a whole blob
back; each save is a single UPDATE, so a write either lands completely or
not at all. Concurrent writers are last-write-wins.
"""

from __future__ import annotations

import abc
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from erp.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class TenantRecord:
    id: str
    name: str = ""
    cnpj: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    settings: dict[str, Any] | None = None


@dataclass
class UserRecord:
    id: str
    tenant_id: str
    role: str | None
    name: str = ""
    email: str = ""
    status: str | None = None
    settings: dict[str, Any] | None = field(default=None)


class SettingsRepository(abc.ABC):
    """Storage contract the permission and settings services depend on."""

    @abc.abstractmethod
    async def load_tenant(self, tenant_id: str) -> TenantRecord | None: ...

    @abc.abstractmethod
    async def save_tenant_settings(self, tenant_id: str, settings: dict[str, Any]) -> bool:
        """Replace the tenant settings blob. Returns False if the tenant is missing."""

    @abc.abstractmethod
    async def load_user(self, tenant_id: str, user_id: str) -> UserRecord | None: ...

    @abc.abstractmethod
    async def list_users(self, tenant_id: str) -> list[UserRecord]: ...

    @abc.abstractmethod
    async def save_user_settings(
        self, tenant_id: str, user_id: str, settings: dict[str, Any]
    ) -> bool:
        """Replace the user override blob. Returns False if the user is missing."""

    async def load_tenant_settings(self, tenant_id: str) -> dict[str, Any]:
        """Settings blob of a tenant; `{}` when the tenant or blob is absent."""
        tenant = await self.load_tenant(tenant_id)
        if tenant is None or not tenant.settings:
            return {}
        return dict(tenant.settings)


def _as_dict(value: Any) -> dict[str, Any] | None:
    """asyncpg hands JSONB back as str unless a codec is registered."""
    if value is None:
        return None
    if isinstance(value, str):
        loaded = json.loads(value)
        return loaded if isinstance(loaded, dict) else None
    return dict(value)


class SQLSettingsRepository(SettingsRepository):
    """SettingsRepository over the `tenants` / `users` tables."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def load_tenant(self, tenant_id: str) -> TenantRecord | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("""
                    SELECT id, name, cnpj, email, phone, address, city, state,
                           zip_code, settings
                    FROM tenants
                    WHERE id = :tenant_id
                """),
                {"tenant_id": tenant_id},
            )
            row = result.first()

        if not row:
            return None
        data = dict(row._mapping)
        return TenantRecord(
            id=str(data["id"]),
            name=data.get("name") or "",
            cnpj=data.get("cnpj") or "",
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            address=data.get("address") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            zip_code=data.get("zip_code") or "",
            settings=_as_dict(data.get("settings")),
        )

    async def save_tenant_settings(self, tenant_id: str, settings: dict[str, Any]) -> bool:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("""
                    UPDATE tenants
                    SET settings = CAST(:settings AS jsonb), updated_at = now()
                    WHERE id = :tenant_id
                    RETURNING id
                """),
                {"tenant_id": tenant_id, "settings": json.dumps(settings)},
            )
            updated = result.first() is not None

        if not updated:
            logger.warning("Tenant settings not saved, tenant missing: %s", tenant_id)
        return updated

    async def load_user(self, tenant_id: str, user_id: str) -> UserRecord | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("""
                    SELECT id, tenant_id, name, email, role, status, settings
                    FROM users
                    WHERE id = :user_id AND tenant_id = :tenant_id
                """),
                {"user_id": user_id, "tenant_id": tenant_id},
            )
            row = result.first()

        if not row:
            return None
        return self._user_from_row(dict(row._mapping))

    async def list_users(self, tenant_id: str) -> list[UserRecord]:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("""
                    SELECT id, tenant_id, name, email, role, status, settings
                    FROM users
                    WHERE tenant_id = :tenant_id
                    ORDER BY name
                """),
                {"tenant_id": tenant_id},
            )
            rows = [dict(row._mapping) for row in result]

        return [self._user_from_row(r) for r in rows]

    async def save_user_settings(
        self, tenant_id: str, user_id: str, settings: dict[str, Any]
    ) -> bool:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("""
                    UPDATE users
                    SET settings = CAST(:settings AS jsonb), updated_at = now()
                    WHERE id = :user_id AND tenant_id = :tenant_id
                    RETURNING id
                """),
                {
                    "user_id": user_id,
                    "tenant_id": tenant_id,
                    "settings": json.dumps(settings),
                },
            )
            return result.first() is not None

    @staticmethod
    def _user_from_row(data: dict[str, Any]) -> UserRecord:
        return UserRecord(
            id=str(data["id"]),
            tenant_id=str(data["tenant_id"]),
            role=data.get("role"),
            name=data.get("name") or "",
            email=data.get("email") or "",
            status=data.get("status"),
            settings=_as_dict(data.get("settings")),
        )


_repository: SettingsRepository | None = None


def get_repository() -> SettingsRepository:
    """Process-wide SQL repository, created on first use."""
    global _repository
    if _repository is None:
        settings = get_settings()
        engine = create_async_engine(settings.database.url, pool_pre_ping=True)
        _repository = SQLSettingsRepository(engine)
    return _repository
