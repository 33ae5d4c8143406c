"""Initial schema: tenants, users and audit_log.

Tenants and users each carry a JSONB `settings` column. The tenant blob
holds company info, notification settings, role policies, view profiles,
view settings and general settings; the user blob holds the per-user
permission override.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE tenants (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name            VARCHAR(200) NOT NULL,
            cnpj            VARCHAR(18),
            email           VARCHAR(255),
            phone           VARCHAR(30),
            address         TEXT,
            city            VARCHAR(100),
            state           VARCHAR(2),
            zip_code        VARCHAR(10),
            settings        JSONB        NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT now(),
            updated_at      TIMESTAMPTZ
        )
    """)

    op.execute("""
        CREATE TABLE users (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id       UUID         NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
            name            VARCHAR(200) NOT NULL,
            email           VARCHAR(255) NOT NULL UNIQUE,
            password_hash   VARCHAR(200) NOT NULL,
            role            VARCHAR(20)  NOT NULL DEFAULT 'VIEWER'
                            CHECK (role IN ('ADMIN', 'MANAGER', 'SELLER', 'VIEWER')),
            status          VARCHAR(20)  NOT NULL DEFAULT 'ACTIVE',
            settings        JSONB,
            last_login_at   TIMESTAMPTZ,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT now(),
            updated_at      TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX ix_users_tenant ON users (tenant_id)")

    op.execute("""
        CREATE TABLE audit_log (
            id              BIGSERIAL PRIMARY KEY,
            tenant_id       UUID         REFERENCES tenants(id) ON DELETE CASCADE,
            user_id         UUID,
            action          VARCHAR(10)  NOT NULL,
            resource_type   VARCHAR(200) NOT NULL,
            resource_id     VARCHAR(100),
            ip_address      VARCHAR(45),
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX ix_audit_log_tenant_created ON audit_log (tenant_id, created_at)")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_audit_log_tenant_created")
    op.execute("DROP TABLE IF EXISTS audit_log")
    op.execute("DROP INDEX IF EXISTS ix_users_tenant")
    op.execute("DROP TABLE IF EXISTS users")
    op.execute("DROP TABLE IF EXISTS tenants")
