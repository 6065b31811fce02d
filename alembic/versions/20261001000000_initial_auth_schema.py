"""Initial auth schema: roles, profiles, credentials, menus, permissions, grants, security settings.

Revision ID: 20261001000000
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20261001000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("default_role", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("session_binding_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_roles_name"), "roles", ["name"], unique=True)

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="requested"),
        sa.Column("is_profile_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_profiles_email"), "user_profiles", ["email"], unique=True)
    op.create_index(op.f("ix_user_profiles_role_id"), "user_profiles", ["role_id"], unique=False)

    op.create_table(
        "credentials",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("account_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lock_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("mfa_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("mfa_secret", sa.String(length=64), nullable=True),
        sa.Column("mfa_pending_secret", sa.String(length=64), nullable=True),
        sa.Column("session_id", sa.String(length=128), nullable=True),
        sa.Column("session_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("permissions_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_reset_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_invite", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("otp_digest", sa.String(length=64), nullable=True),
        sa.Column("otp_expires_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_credentials_username"), "credentials", ["username"], unique=True)
    op.create_index(op.f("ix_credentials_email"), "credentials", ["email"], unique=True)
    op.create_index(op.f("ix_credentials_user_id"), "credentials", ["user_id"], unique=False)
    op.create_index(op.f("ix_credentials_role_id"), "credentials", ["role_id"], unique=False)

    op.create_table(
        "menus",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("menu_key", sa.String(length=128), nullable=False),
        sa.Column("menu_name", sa.String(length=255), nullable=False),
        sa.Column("route", sa.String(length=512), nullable=False),
        sa.Column("icon", sa.String(length=64), nullable=False, server_default="circle"),
        sa.Column("is_parent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("menus.id"), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.Integer(), nullable=False, server_default="1"),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_menus_menu_key"), "menus", ["menu_key"], unique=False)
    op.create_index("ix_menus_parent_order", "menus", ["parent_id", "order_index"], unique=False)

    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_permissions_name"), "permissions", ["name"], unique=True)

    op.create_table(
        "role_menu_permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("menu_id", sa.Integer(), sa.ForeignKey("menus.id"), nullable=False),
        sa.Column("grant_kind", sa.String(length=16), nullable=False, server_default="visible"),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id"), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(grant_kind = 'visible' AND permission_id IS NULL)"
            " OR (grant_kind = 'permission' AND permission_id IS NOT NULL)",
            name="ck_role_menu_permissions_grant_kind",
        ),
    )
    op.create_index(op.f("ix_role_menu_permissions_role_id"), "role_menu_permissions", ["role_id"], unique=False)
    op.create_index(op.f("ix_role_menu_permissions_menu_id"), "role_menu_permissions", ["menu_id"], unique=False)
    op.create_index(
        "uq_role_menu_permissions_active",
        "role_menu_permissions",
        ["role_id", "menu_id"],
        unique=True,
        postgresql_where=sa.text("NOT is_deleted"),
        sqlite_where=sa.text("is_deleted = 0"),
    )

    op.create_table(
        "security_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("max_login_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("lock_time_minutes", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("account_locking_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("id = 1", name="ck_security_settings_singleton"),
        sa.CheckConstraint("max_login_attempts >= 1", name="ck_security_settings_attempts"),
        sa.CheckConstraint("lock_time_minutes >= 1", name="ck_security_settings_lock_time"),
    )


def downgrade() -> None:
    op.drop_table("security_settings")
    op.drop_index("uq_role_menu_permissions_active", table_name="role_menu_permissions")
    op.drop_index(op.f("ix_role_menu_permissions_menu_id"), table_name="role_menu_permissions")
    op.drop_index(op.f("ix_role_menu_permissions_role_id"), table_name="role_menu_permissions")
    op.drop_table("role_menu_permissions")
    op.drop_index(op.f("ix_permissions_name"), table_name="permissions")
    op.drop_table("permissions")
    op.drop_index("ix_menus_parent_order", table_name="menus")
    op.drop_index(op.f("ix_menus_menu_key"), table_name="menus")
    op.drop_table("menus")
    op.drop_index(op.f("ix_credentials_role_id"), table_name="credentials")
    op.drop_index(op.f("ix_credentials_user_id"), table_name="credentials")
    op.drop_index(op.f("ix_credentials_email"), table_name="credentials")
    op.drop_index(op.f("ix_credentials_username"), table_name="credentials")
    op.drop_table("credentials")
    op.drop_index(op.f("ix_user_profiles_role_id"), table_name="user_profiles")
    op.drop_index(op.f("ix_user_profiles_email"), table_name="user_profiles")
    op.drop_table("user_profiles")
    op.drop_index(op.f("ix_roles_name"), table_name="roles")
    op.drop_table("roles")
