"""create_users_and_inventory_lots

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c1f0a9d2b7e'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_users_username"), ["username"], unique=True)
        batch_op.create_index(batch_op.f("ix_users_email"), ["email"], unique=True)

    op.create_table(
        "inventory_lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_number", sa.String(length=100), nullable=False),
        sa.Column("customer_part_number", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("uom", sa.String(length=20), nullable=False),
        sa.Column("batch", sa.String(length=50), nullable=False),
        sa.Column("mfg_date", sa.Date(), nullable=False),
        sa.Column("exp_date", sa.Date(), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Numeric(precision=10, scale=3), nullable=False),
        sa.Column("ageing_days", sa.Integer(), nullable=True),
        sa.Column("days_to_expiry", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("qty >= 0", name="ck_inventory_lots_qty_non_negative"),
        sa.CheckConstraint("weight >= 0", name="ck_inventory_lots_weight_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch", "part_number", name="uq_inventory_lots_batch_part"),
    )
    with op.batch_alter_table("inventory_lots", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_inventory_lots_part_number"), ["part_number"], unique=False)
        batch_op.create_index(batch_op.f("ix_inventory_lots_batch"), ["batch"], unique=False)
        batch_op.create_index(batch_op.f("ix_inventory_lots_mfg_date"), ["mfg_date"], unique=False)
        batch_op.create_index(batch_op.f("ix_inventory_lots_exp_date"), ["exp_date"], unique=False)


def downgrade():
    with op.batch_alter_table("inventory_lots", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_inventory_lots_exp_date"))
        batch_op.drop_index(batch_op.f("ix_inventory_lots_mfg_date"))
        batch_op.drop_index(batch_op.f("ix_inventory_lots_batch"))
        batch_op.drop_index(batch_op.f("ix_inventory_lots_part_number"))
    op.drop_table("inventory_lots")

    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_users_email"))
        batch_op.drop_index(batch_op.f("ix_users_username"))
    op.drop_table("users")
