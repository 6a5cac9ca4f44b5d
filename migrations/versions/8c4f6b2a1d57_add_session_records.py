"""add session_records table

Revision ID: 8c4f6b2a1d57
Revises: 5a1e2c7d9b30
Create Date: 2026-10-05 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8c4f6b2a1d57"
down_revision = "5a1e2c7d9b30"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "session_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("browser_id", sa.String(length=64), nullable=True),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("user_type", sa.String(length=64), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("login_at", sa.DateTime(), nullable=True),
        sa.Column("login_ip", sa.String(length=64), nullable=True),
        sa.Column("login_ip_country", sa.String(length=2), nullable=True),
        sa.Column("host", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(), nullable=True),
        sa.Column("last_activity_ip", sa.String(length=64), nullable=True),
        sa.Column("last_activity_ip_country", sa.String(length=2), nullable=True),
        sa.Column("last_activity_path", sa.String(length=255), nullable=True),
        sa.Column("requests", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("password_seen_at", sa.DateTime(), nullable=True),
        sa.Column("two_factored_at", sa.DateTime(), nullable=True),
        sa.Column("two_factored_ip", sa.String(length=64), nullable=True),
        sa.Column("two_factored_ip_country", sa.String(length=2), nullable=True),
        sa.Column("skip_two_factor", sa.Boolean(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["session_records.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("session_records", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_session_records_token_hash"), ["token_hash"], unique=False)
        batch_op.create_index(batch_op.f("ix_session_records_browser_id"), ["browser_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_session_records_active"), ["active"], unique=False)
        batch_op.create_index("ix_session_records_user", ["user_type", "user_id"], unique=False)


def downgrade():
    with op.batch_alter_table("session_records", schema=None) as batch_op:
        batch_op.drop_index("ix_session_records_user")
        batch_op.drop_index(batch_op.f("ix_session_records_active"))
        batch_op.drop_index(batch_op.f("ix_session_records_browser_id"))
        batch_op.drop_index(batch_op.f("ix_session_records_token_hash"))

    op.drop_table("session_records")
