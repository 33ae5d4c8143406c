"""Typed tenant settings sub-documents.

Each sub-document lives under its own key of `tenants.settings`. Reads fill
missing fields from defaults; updates merge explicitly field by field.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from erp.storage.repository import TenantRecord

COMPANY_KEY = "company"
NOTIFICATIONS_KEY = "notifications"
VIEW_SETTINGS_KEY = "view_settings"
GENERAL_SETTINGS_KEY = "general_settings"

_SECRET_FIELDS = ("smtp_password", "evolution_api_key")


class CompanyInfo(BaseModel):
    name: str = ""
    document: str = ""  # CNPJ / CPF
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class CompanyUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    document: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class NotificationSettings(BaseModel):
    email_enabled: bool = True
    whatsapp_enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    evolution_api_url: str = ""
    evolution_api_key: str = ""
    evolution_instance: str = ""


class NotificationsUpdate(BaseModel):
    email_enabled: bool | None = None
    whatsapp_enabled: bool | None = None
    smtp_host: str | None = None
    smtp_port: int | None = Field(default=None, ge=1, le=65535)
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from: str | None = None
    evolution_api_url: str | None = None
    evolution_api_key: str | None = None
    evolution_instance: str | None = None


class ViewSettings(BaseModel):
    compact_mode: bool = False
    dark_mode: bool = False
    items_per_page: int = 20
    show_inactive_items: bool = False
    default_currency: str = "BRL"
    date_format: str = "DD/MM/YYYY"
    time_format: str = "24h"


class ViewSettingsUpdate(BaseModel):
    compact_mode: bool | None = None
    dark_mode: bool | None = None
    items_per_page: int | None = Field(default=None, ge=1, le=500)
    show_inactive_items: bool | None = None
    default_currency: str | None = None
    date_format: str | None = None
    time_format: str | None = None


class GeneralSettings(BaseModel):
    require_approval_for_discounts: bool = False
    max_discount_percent: float = 15
    allow_negative_stock: bool = False
    low_stock_threshold: int = 10
    auto_generate_invoice: bool = True
    warranty_days: int = 90
    loyalty_points_per_real: float = 1
    loyalty_points_value: float = 0.1


class GeneralSettingsUpdate(BaseModel):
    require_approval_for_discounts: bool | None = None
    max_discount_percent: float | None = Field(default=None, ge=0, le=100)
    allow_negative_stock: bool | None = None
    low_stock_threshold: int | None = Field(default=None, ge=0)
    auto_generate_invoice: bool | None = None
    warranty_days: int | None = Field(default=None, ge=0)
    loyalty_points_per_real: float | None = Field(default=None, ge=0)
    loyalty_points_value: float | None = Field(default=None, ge=0)


def _load(model: type[BaseModel], raw: Any) -> Any:
    if not isinstance(raw, dict):
        return model()
    try:
        return model.model_validate(raw)
    except ValidationError:
        return model()


def read_company(settings: dict[str, Any], tenant: TenantRecord | None) -> CompanyInfo:
    """Stored company info; empty fields fall back to the tenant record."""
    stored: CompanyInfo = _load(CompanyInfo, settings.get(COMPANY_KEY))
    if tenant is None:
        return stored
    return CompanyInfo(
        name=stored.name or tenant.name,
        document=stored.document or tenant.cnpj,
        email=stored.email or tenant.email,
        phone=stored.phone or tenant.phone,
        address=stored.address or tenant.address,
        city=stored.city or tenant.city,
        state=stored.state or tenant.state,
        zip_code=stored.zip_code or tenant.zip_code,
    )


def company_from_update(update: CompanyUpdate) -> CompanyInfo:
    """Company info is replaced as a whole; omitted fields become empty."""
    return CompanyInfo(
        name=update.name,
        document=update.document or "",
        email=update.email or "",
        phone=update.phone or "",
        address=update.address or "",
        city=update.city or "",
        state=update.state or "",
        zip_code=update.zip_code or "",
    )


def read_notifications(settings: dict[str, Any]) -> NotificationSettings:
    result: NotificationSettings = _load(NotificationSettings, settings.get(NOTIFICATIONS_KEY))
    return result


def public_notifications(stored: NotificationSettings) -> NotificationSettings:
    """Copy safe to return to clients: secrets blanked."""
    return stored.model_copy(update={name: "" for name in _SECRET_FIELDS})


def merge_notifications(
    stored: NotificationSettings, update: NotificationsUpdate
) -> NotificationSettings:
    """Apply an update; secrets change only when a non-empty value is sent."""
    changes = update.model_dump(exclude_none=True)
    for name in _SECRET_FIELDS:
        if not changes.get(name):
            changes.pop(name, None)
    return stored.model_copy(update=changes)


def read_view_settings(settings: dict[str, Any]) -> ViewSettings:
    result: ViewSettings = _load(ViewSettings, settings.get(VIEW_SETTINGS_KEY))
    return result


def read_general_settings(settings: dict[str, Any]) -> GeneralSettings:
    result: GeneralSettings = _load(GeneralSettings, settings.get(GENERAL_SETTINGS_KEY))
    return result


def merge_partial(stored: BaseModel, update: BaseModel) -> Any:
    """Fields present in `update` overwrite `stored`; the rest are kept."""
    return stored.model_copy(update=update.model_dump(exclude_none=True))
