"""initial renovation schema

Revision ID: 4f0a6c2d9e31
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "4f0a6c2d9e31"
down_revision = None
branch_labels = None
depends_on = None


LIVE_ROWS = sa.text("deleted_at IS NULL")

ENUMS = {
    "lot_status": ("ACTIVE", "INACTIVE"),
    "user_status": ("ACTIVE", "INACTIVE"),
    "history_action": ("CREATE", "UPDATE", "DELETE"),
    "act_observation": ("SIN_OBSERVACIONES", "MEDIDOR_PROFUNDO", "RECHAZADO", "BRONCE"),
    "yes_no": ("SI", "NO"),
    "property_type": ("DOMESTICO", "COMERCIAL"),
    "box_location": ("EXTERIOR", "INTERIOR"),
    "element_state": ("BUENO", "MALO"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created once up front; tables only reference them.
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _create_enum_types() -> None:
    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)


def _drop_enum_types() -> None:
    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return
    for name in ENUMS:
        _enum(name).drop(bind, checkfirst=True)


def _live_unique_index(name: str, table: str, columns: list[str]) -> None:
    op.create_index(
        name,
        table,
        columns,
        unique=True,
        sqlite_where=LIVE_ROWS,
        postgresql_where=LIVE_ROWS,
    )


def _history_table(name: str, fk_column: str, target: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(fk_column, sa.Integer(), nullable=False),
        sa.Column("action", _enum("history_action"), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("details", sa.String(length=500), nullable=False, server_default=""),
        sa.ForeignKeyConstraint([fk_column], [f"{target}.id"]),
        sa.ForeignKeyConstraint(["updated_by"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )


def upgrade():
    _create_enum_types()

    op.create_table(
        "permission",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=60), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "role",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _live_unique_index("ix_role_name_live", "role", ["name"])

    op.create_table(
        "role_permission",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("permission_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["permission_id"], ["permission.id"]),
        sa.ForeignKeyConstraint(["role_id"], ["role.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )
    with op.batch_alter_table("role_permission", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_role_permission_role_id"), ["role_id"], unique=False)

    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("names", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("username", sa.String(length=60), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("status", _enum("user_status"), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["role_id"], ["role.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _live_unique_index("ix_user_username_live", "user_account", ["username"])

    op.create_table(
        "lot",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", _enum("lot_status"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _live_unique_index("ix_lot_name_live", "lot", ["name"])
    op.create_index(
        "ix_lot_single_active",
        "lot",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE' AND deleted_at IS NULL"),
        postgresql_where=sa.text("status = 'ACTIVE' AND deleted_at IS NULL"),
    )

    op.create_table(
        "customer",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inscription", sa.String(length=30), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("customer_name", sa.String(length=160), nullable=False, server_default=""),
        sa.Column("old_meter", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("observation", sa.String(length=255), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inscription"),
    )

    op.create_table(
        "technician",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dni", sa.String(length=15), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _live_unique_index("ix_technician_dni_live", "technician", ["dni"])

    op.create_table(
        "meter_renovation",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("meter_number", sa.String(length=40), nullable=False),
        sa.Column("verification_code", sa.String(length=40), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meter_number"),
    )

    op.create_table(
        "act",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("file_number", sa.String(length=20), nullable=False),
        sa.Column("file_date", sa.Date(), nullable=False),
        sa.Column("file_time", sa.Time(), nullable=True),
        sa.Column("reading", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("observations", _enum("act_observation"), nullable=False),
        sa.Column("rotating_pointer", _enum("yes_no"), nullable=True),
        sa.Column("meter_security_seal", _enum("yes_no"), nullable=True),
        sa.Column("reading_impossibility_viewer", _enum("yes_no"), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("technician_id", sa.Integer(), nullable=False),
        sa.Column("meter_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["created_by"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.ForeignKeyConstraint(["lot_id"], ["lot.id"]),
        sa.ForeignKeyConstraint(["meter_id"], ["meter_renovation.id"]),
        sa.ForeignKeyConstraint(["technician_id"], ["technician.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("act", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_act_lot_id"), ["lot_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_act_technician_id"), ["technician_id"], unique=False)
    _live_unique_index("ix_act_file_number_live", "act", ["file_number"])
    _live_unique_index("ix_act_customer_live", "act", ["customer_id"])
    _live_unique_index("ix_act_meter_live", "act", ["meter_id"])

    _history_table("act_history", "act_id", "act")
    with op.batch_alter_table("act_history", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_act_history_updated_by"), ["updated_by"], unique=False)
    op.create_index("ix_act_history_act_at", "act_history", ["act_id", "updated_at"], unique=False)

    op.create_table(
        "pre_catastral",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("file_number", sa.String(length=20), nullable=False),
        sa.Column("property", _enum("property_type"), nullable=False),
        sa.Column("is_located", _enum("yes_no"), nullable=True),
        sa.Column("located_box", _enum("box_location"), nullable=False),
        sa.Column("buried_connection", _enum("yes_no"), nullable=False),
        sa.Column("has_meter", _enum("yes_no"), nullable=False),
        sa.Column("reading", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("has_cover", _enum("yes_no"), nullable=False),
        sa.Column("cover_state", _enum("element_state"), nullable=False),
        sa.Column("has_box", _enum("yes_no"), nullable=False),
        sa.Column("box_state", _enum("element_state"), nullable=False),
        sa.Column("keys", sa.String(length=1), nullable=False, server_default="0"),
        sa.Column("cover_material", sa.String(length=60), nullable=False, server_default=""),
        sa.Column("observations", _enum("act_observation"), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("technician_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["created_by"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.ForeignKeyConstraint(["lot_id"], ["lot.id"]),
        sa.ForeignKeyConstraint(["technician_id"], ["technician.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("pre_catastral", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_pre_catastral_lot_id"), ["lot_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_pre_catastral_technician_id"), ["technician_id"], unique=False)
    _live_unique_index("ix_pre_catastral_file_number_live", "pre_catastral", ["file_number"])
    _live_unique_index("ix_pre_catastral_customer_live", "pre_catastral", ["customer_id"])

    _history_table("pre_catastral_history", "pre_catastral_id", "pre_catastral")
    with op.batch_alter_table("pre_catastral_history", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_pre_catastral_history_updated_by"), ["updated_by"], unique=False)
    op.create_index(
        "ix_pre_catastral_history_at",
        "pre_catastral_history",
        ["pre_catastral_id", "updated_at"],
        unique=False,
    )

    op.create_table(
        "labeled",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["lot_id"], ["lot.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("labeled", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_labeled_lot_id"), ["lot_id"], unique=False)
    _live_unique_index("ix_labeled_name_live", "labeled", ["name"])

    op.create_table(
        "meter_labeled",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("labeled_id", sa.Integer(), nullable=False),
        sa.Column("old_meter", sa.String(length=40), nullable=False),
        sa.Column("reading", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(["labeled_id"], ["labeled.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("meter_labeled", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_meter_labeled_labeled_id"), ["labeled_id"], unique=False)

    _history_table("labeled_history", "labeled_id", "labeled")
    with op.batch_alter_table("labeled_history", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_labeled_history_labeled_id"), ["labeled_id"], unique=False)


def downgrade():
    op.drop_table("labeled_history")
    op.drop_table("meter_labeled")
    op.drop_table("labeled")
    op.drop_table("pre_catastral_history")
    op.drop_table("pre_catastral")
    op.drop_table("act_history")
    op.drop_table("act")
    op.drop_table("meter_renovation")
    op.drop_table("technician")
    op.drop_table("customer")
    op.drop_table("lot")
    op.drop_table("user_account")
    op.drop_table("role_permission")
    op.drop_table("role")
    op.drop_table("permission")
    _drop_enum_types()
