"""Built-in role policies and view profiles.

Tenants without persisted overrides use these tables as-is. The tables are
module-level tuples and are only handed out as deep copies, so no caller can
mutate the shared defaults.
"""

from __future__ import annotations

from erp.permissions.models import Module, ModuleCapability, Role, RolePolicy, ViewProfile

# ── Role → module capability matrix ──────────────────────────
# Flags per module: (view, create, edit, delete, export)

_Flags = tuple[bool, bool, bool, bool, bool]

_ALL: _Flags = (True, True, True, True, True)
_NONE: _Flags = (False, False, False, False, False)
_VIEW: _Flags = (True, False, False, False, False)

_ROLE_MATRIX: dict[Role, tuple[str, int, dict[Module, _Flags]]] = {
    Role.ADMIN: ("Administrador", 1, {m: _ALL for m in Module}),
    Role.MANAGER: (
        "Gerente",
        2,
        {
            Module.DASHBOARD: (True, True, True, False, True),
            Module.PDV: _ALL,
            Module.SALES: (True, True, True, False, True),
            Module.PRODUCTS: _ALL,
            Module.CATEGORIES: _ALL,
            Module.CUSTOMERS: (True, True, True, False, True),
            Module.SERVICE_ORDERS: (True, True, True, False, True),
            Module.FINANCIAL: (True, True, True, False, True),
            Module.INVOICES: (True, True, False, False, True),
            Module.USERS: _VIEW,
            Module.SETTINGS: _VIEW,
        },
    ),
    Role.SELLER: (
        "Vendedor",
        3,
        {
            Module.DASHBOARD: _VIEW,
            Module.PDV: (True, True, False, False, False),
            Module.SALES: (True, True, False, False, False),
            Module.PRODUCTS: _VIEW,
            Module.CATEGORIES: _VIEW,
            Module.CUSTOMERS: (True, True, True, False, False),
            Module.SERVICE_ORDERS: (True, True, True, False, False),
            Module.FINANCIAL: _NONE,
            Module.INVOICES: _VIEW,
            Module.USERS: _NONE,
            Module.SETTINGS: _NONE,
        },
    ),
    Role.VIEWER: (
        "Visualizador",
        4,
        {
            Module.DASHBOARD: _VIEW,
            Module.PDV: _NONE,
            Module.SALES: _VIEW,
            Module.PRODUCTS: _VIEW,
            Module.CATEGORIES: _VIEW,
            Module.CUSTOMERS: _VIEW,
            Module.SERVICE_ORDERS: _VIEW,
            Module.FINANCIAL: _VIEW,
            Module.INVOICES: _VIEW,
            Module.USERS: _NONE,
            Module.SETTINGS: _NONE,
        },
    ),
}


def _build_policy(role: Role) -> RolePolicy:
    display_name, level, matrix = _ROLE_MATRIX[role]
    return RolePolicy(
        role=role.value,
        display_name=display_name,
        hierarchy_level=level,
        permissions=[
            ModuleCapability(
                module=module.value,
                view=flags[0],
                create=flags[1],
                edit=flags[2],
                delete=flags[3],
                export=flags[4],
            )
            for module, flags in matrix.items()
        ],
    )


DEFAULT_ROLE_POLICIES: tuple[RolePolicy, ...] = tuple(_build_policy(r) for r in Role)

# ── View profiles ────────────────────────────────────────────

DEFAULT_VIEW_PROFILES: tuple[ViewProfile, ...] = (
    ViewProfile(
        profile="full",
        display_name="Acesso Completo",
        description="Acesso total a todos os módulos e funcionalidades",
        allowed_modules=[m.value for m in Module],
        default_page="/dashboard",
    ),
    ViewProfile(
        profile="manager",
        display_name="Gerente",
        description="Acesso gerencial sem configurações de sistema",
        allowed_modules=[m.value for m in Module if m is not Module.SETTINGS],
        default_page="/dashboard",
    ),
    ViewProfile(
        profile="sales",
        display_name="Consultor de Vendas",
        description="Acesso a vendas, produtos e clientes",
        allowed_modules=["dashboard", "pdv", "vendas", "produtos", "categorias", "clientes"],
        default_page="/dashboard/pdv",
    ),
    ViewProfile(
        profile="store",
        display_name="Atendente de Loja",
        description="Acesso apenas ao PDV e ordens de serviço",
        allowed_modules=["pdv", "ordens-servico", "clientes"],
        default_page="/dashboard/pdv",
    ),
    ViewProfile(
        profile="financial",
        display_name="Financeiro",
        description="Acesso ao módulo financeiro e relatórios",
        allowed_modules=["dashboard", "financeiro", "vendas", "notas"],
        default_page="/dashboard/financeiro",
    ),
    ViewProfile(
        profile="viewer",
        display_name="Visualizador",
        description="Somente visualização, sem poder criar/editar",
        allowed_modules=["dashboard", "vendas", "produtos", "clientes"],
        default_page="/dashboard",
    ),
    ViewProfile(
        profile="custom",
        display_name="Personalizado",
        description="Permissões definidas manualmente",
        allowed_modules=[],
        default_page="/dashboard",
    ),
)

FALLBACK_ROLE = Role.VIEWER.value
FALLBACK_PROFILE = "viewer"

_ROLE_PROFILE_MAP: dict[str, str] = {
    Role.ADMIN: "full",
    Role.MANAGER: "manager",
    Role.SELLER: "sales",
    Role.VIEWER: "viewer",
}


def default_role_policies() -> list[RolePolicy]:
    """Fresh copy of the built-in role policy list."""
    return [p.model_copy(deep=True) for p in DEFAULT_ROLE_POLICIES]


def default_view_profiles() -> list[ViewProfile]:
    """Fresh copy of the built-in view profile list."""
    return [p.model_copy(deep=True) for p in DEFAULT_VIEW_PROFILES]


def default_role_policy(role: str | None) -> RolePolicy:
    """Built-in policy for `role`; unknown roles get the VIEWER policy."""
    for policy in DEFAULT_ROLE_POLICIES:
        if policy.role == role:
            return policy.model_copy(deep=True)
    return default_role_policy(FALLBACK_ROLE)


def default_view_profile(profile: str | None) -> ViewProfile:
    """Built-in view profile by id; unknown ids get the `viewer` profile."""
    for view_profile in DEFAULT_VIEW_PROFILES:
        if view_profile.profile == profile:
            return view_profile.model_copy(deep=True)
    return default_view_profile(FALLBACK_PROFILE)


def default_view_profile_for_role(role: str | None) -> str:
    """Profile id a role lands on when the user has not picked one."""
    if role is None:
        return FALLBACK_PROFILE
    return _ROLE_PROFILE_MAP.get(role, FALLBACK_PROFILE)
