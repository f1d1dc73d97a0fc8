"""create helpdesk schema

Revision ID: a0c1d2e3f4a5
Revises:
Create Date: 2026-10-19 09:12:40.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a0c1d2e3f4a5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, clients, tickets and audit_logs (idempotent)."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())
    is_pg = conn.dialect.name == "postgresql"

    # REST inserts omit id/code/timestamps, so Postgres must fill them itself.
    id_default = sa.text("gen_random_uuid()::text") if is_pg else None

    if is_pg:
        op.execute("CREATE SEQUENCE IF NOT EXISTS ticket_code_seq START 1")

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True, server_default=id_default),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("role", sa.String(32), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            sa.Column("id", sa.String(36), primary_key=True, server_default=id_default),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("contact_person", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("phone", sa.String(64), nullable=False),
            sa.Column("address", sa.Text(), nullable=False, server_default=""),
            sa.Column("city", sa.String(128), nullable=False),
            sa.Column("state", sa.String(2), nullable=False),
            sa.Column("agency_number", sa.String(64), nullable=True),
            sa.Column("agency_name", sa.String(255), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_clients_name", "clients", ["name"])

    if "tickets" not in existing_tables:
        code_default = (
            sa.text("'OS-' || lpad(nextval('ticket_code_seq')::text, 6, '0')") if is_pg else None
        )
        op.create_table(
            "tickets",
            sa.Column("id", sa.String(36), primary_key=True, server_default=id_default),
            sa.Column("code", sa.String(32), nullable=False, unique=True, server_default=code_default),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False),
            sa.Column("technician_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="open"),
            sa.Column("priority", sa.String(32), nullable=False, server_default="medium"),
            sa.Column("location", sa.String(255), nullable=False, server_default=""),
            sa.Column("found_defect", sa.Text(), nullable=True),
            sa.Column("executed_services", sa.Text(), nullable=True),
            sa.Column("technician_notes", sa.Text(), nullable=True),
            sa.Column("client_notes", sa.Text(), nullable=True),
            sa.Column("equipment_info", sa.Text(), nullable=True),
            sa.Column("under_warranty", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("working", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("service_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("verified_by_client", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("technician_signature", sa.Text(), nullable=True),
            sa.Column("client_signature", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_tickets_client", "tickets", ["client_id"])
        op.create_index("idx_tickets_technician", "tickets", ["technician_id"])
        op.create_index("idx_tickets_status", "tickets", ["status"])
        op.create_index("idx_tickets_created_at", "tickets", ["created_at"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(36), primary_key=True, server_default=id_default),
            sa.Column("user_id", sa.String(36), nullable=True),
            sa.Column("action", sa.String(16), nullable=False),
            sa.Column("entity", sa.String(32), nullable=False),
            sa.Column("entity_id", sa.String(64), nullable=True),
            sa.Column("details", sa.Text(), nullable=False, server_default=""),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_audit_logs_created_at", "audit_logs", ["created_at"])

    if is_pg:
        op.execute(
            """
            CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
            BEGIN
                NEW.updated_at = now();
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql
            """
        )
        op.execute("DROP TRIGGER IF EXISTS tickets_set_updated_at ON tickets")
        op.execute(
            "CREATE TRIGGER tickets_set_updated_at BEFORE UPDATE ON tickets "
            "FOR EACH ROW EXECUTE FUNCTION set_updated_at()"
        )


def downgrade() -> None:
    """Drop the helpdesk schema."""
    conn = op.get_bind()
    if conn.dialect.name == "postgresql":
        op.execute("DROP TRIGGER IF EXISTS tickets_set_updated_at ON tickets")
        op.execute("DROP FUNCTION IF EXISTS set_updated_at()")
    op.drop_index("idx_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("idx_tickets_created_at", table_name="tickets")
    op.drop_index("idx_tickets_status", table_name="tickets")
    op.drop_index("idx_tickets_technician", table_name="tickets")
    op.drop_index("idx_tickets_client", table_name="tickets")
    op.drop_table("tickets")
    op.drop_index("idx_clients_name", table_name="clients")
    op.drop_table("clients")
    op.drop_table("users")
    if conn.dialect.name == "postgresql":
        op.execute("DROP SEQUENCE IF EXISTS ticket_code_seq")
