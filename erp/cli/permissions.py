"""CLI commands for inspecting permission defaults and resolutions.

Usage:
    erp-admin permissions roles
    erp-admin permissions profiles
    erp-admin permissions effective <tenant_id> <user_id>
"""

from __future__ import annotations

import asyncio

import typer
from sqlalchemy.ext.asyncio import create_async_engine

from erp.config import get_settings
from erp.permissions.defaults import default_role_policies, default_view_profiles
from erp.permissions.errors import NotFound
from erp.permissions.models import ALL_ACTIONS, EffectivePermissions, ModuleCapability
from erp.permissions.service import PermissionService
from erp.storage.repository import SQLSettingsRepository

permissions_app = typer.Typer(help="Permission inspection commands")


def _flags(capability: ModuleCapability) -> str:
    return " ".join(a[0].upper() if capability.allows(a) else "-" for a in ALL_ACTIONS)


def _print_capabilities(capabilities: list[ModuleCapability]) -> None:
    for cap in capabilities:
        typer.echo(f"    {cap.module:<16} {_flags(cap)}")


async def _resolve(tenant_id: str, user_id: str) -> EffectivePermissions:
    settings = get_settings()
    engine = create_async_engine(settings.database.url, pool_pre_ping=True)
    try:
        service = PermissionService(SQLSettingsRepository(engine))
        return await service.get_effective_user_permissions(tenant_id, user_id)
    finally:
        await engine.dispose()


@permissions_app.command("roles")
def roles() -> None:
    """Show the built-in role permission matrix (V C E D X)."""
    for policy in default_role_policies():
        typer.echo(
            typer.style(
                f"{policy.role} ({policy.display_name}, level {policy.hierarchy_level})",
                fg=typer.colors.CYAN,
                bold=True,
            )
        )
        _print_capabilities(policy.permissions)


@permissions_app.command("profiles")
def profiles() -> None:
    """Show the built-in view profiles."""
    for profile in default_view_profiles():
        typer.echo(typer.style(f"{profile.profile}", fg=typer.colors.CYAN, bold=True))
        typer.echo(f"  name:    {profile.display_name}")
        typer.echo(f"  page:    {profile.default_page}")
        typer.echo(f"  modules: {', '.join(profile.allowed_modules)}")


@permissions_app.command("effective")
def effective(
    tenant_id: str = typer.Argument(help="Tenant ID"),
    user_id: str = typer.Argument(help="User ID"),
) -> None:
    """Resolve a user's effective permissions against the database."""
    try:
        result = asyncio.run(_resolve(tenant_id, user_id))
    except NotFound as e:
        typer.echo(typer.style(f"❌ {e.message}", fg=typer.colors.RED))
        raise typer.Exit(code=1) from e

    typer.echo(f"source:        {result.source}")
    typer.echo(f"view profile:  {result.view_profile}")
    typer.echo(f"default page:  {result.default_page}")
    typer.echo(f"modules:       {', '.join(result.allowed_modules) or '-'}")
    typer.echo(
        f"discounts:     {'yes' if result.can_apply_discounts else 'no'}"
        f" (max {result.max_discount_percent:g}%)"
    )
    typer.echo(f"refunds:       {'yes' if result.can_process_refunds else 'no'}")
    typer.echo(f"reports:       {'yes' if result.can_access_reports else 'no'}")
    typer.echo(f"export:        {'yes' if result.can_export_data else 'no'}")
    typer.echo("permissions:")
    _print_capabilities(result.permissions)
