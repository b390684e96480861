"""kinship baseline: people, relationships, suggestions, connection requests

Revision ID: 3f9c2a1d7b40
Revises:
Create Date: 2026-10-18 09:12:41.204117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f9c2a1d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


gender = sa.Enum("male", "female", "other", "unknown", name="gender")


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
    )
    op.create_index("ix_user_id", "user", ["id"])
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_username", "user", ["username"])

    op.create_table(
        "person",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("associated_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("given_name", sa.String(64), nullable=False),
        sa.Column("family_name", sa.String(64), nullable=True),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("gender", gender, nullable=False),
        sa.Column("is_alive", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_person_owner_user_id", "person", ["owner_user_id"])
    op.create_index("ix_person_associated_user_id", "person", ["associated_user_id"])

    op.create_table(
        "relationship",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("person1_id", sa.Integer(), sa.ForeignKey("person.id", ondelete="CASCADE"), nullable=False),
        sa.Column("person2_id", sa.Integer(), sa.ForeignKey("person.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pair_low", sa.Integer(), nullable=False),
        sa.Column("pair_high", sa.Integer(), nullable=False),
        sa.Column("relationship_type", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("confidence", sa.String(16), nullable=True),
        sa.Column("added_by_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("person1_id <> person2_id", name="ck_relationship_not_self"),
    )
    op.create_index("ix_relationship_person1_id", "relationship", ["person1_id"])
    op.create_index("ix_relationship_person2_id", "relationship", ["person2_id"])
    op.create_index("ix_relationship_relationship_type", "relationship", ["relationship_type"])
    op.create_index("ix_relationship_added_by_user_id", "relationship", ["added_by_user_id"])
    op.create_index("ix_relationship_person1_type", "relationship", ["person1_id", "relationship_type"])
    op.create_index("ix_relationship_person2_type", "relationship", ["person2_id", "relationship_type"])
    op.create_index(
        "uq_relationship_active_pair",
        "relationship",
        ["pair_low", "pair_high"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "relationship_suggestion",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("person1_id", sa.Integer(), sa.ForeignKey("person.id", ondelete="CASCADE"), nullable=False),
        sa.Column("person2_id", sa.Integer(), sa.ForeignKey("person.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pair_low", sa.Integer(), nullable=False),
        sa.Column("pair_high", sa.Integer(), nullable=False),
        sa.Column("relationship_type", sa.String(32), nullable=False),
        sa.Column("inverse_type", sa.String(32), nullable=True),
        sa.Column("tier", sa.Integer(), nullable=False),
        sa.Column("pattern", sa.String(32), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column(
            "trigger_relationship_id", sa.Integer(),
            sa.ForeignKey("relationship.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("suggested_to_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_relationship_id", sa.Integer(),
            sa.ForeignKey("relationship.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("tier IN (2, 3)", name="ck_suggestion_tier"),
    )
    op.create_index("ix_relationship_suggestion_person1_id", "relationship_suggestion", ["person1_id"])
    op.create_index("ix_relationship_suggestion_person2_id", "relationship_suggestion", ["person2_id"])
    op.create_index(
        "ix_relationship_suggestion_suggested_to_user_id", "relationship_suggestion", ["suggested_to_user_id"]
    )
    op.create_index("ix_suggestion_user_status", "relationship_suggestion", ["suggested_to_user_id", "status"])
    op.create_index("ix_suggestion_pair", "relationship_suggestion", ["pair_low", "pair_high"])
    op.create_index(
        "uq_suggestion_pending_pair",
        "relationship_suggestion",
        ["pair_low", "pair_high"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "connection_request",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("requester_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipient_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requester_person_id", sa.Integer(), sa.ForeignKey("person.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipient_person_id", sa.Integer(), sa.ForeignKey("person.id", ondelete="CASCADE"), nullable=True),
        sa.Column("relationship_type", sa.String(32), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column(
            "created_relationship_id", sa.Integer(),
            sa.ForeignKey("relationship.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_connection_request_requester_user_id", "connection_request", ["requester_user_id"])
    op.create_index("ix_connection_request_recipient_user_id", "connection_request", ["recipient_user_id"])
    op.create_index("ix_connection_recipient_status", "connection_request", ["recipient_user_id", "status"])


def downgrade() -> None:
    op.drop_table("connection_request")
    op.drop_table("relationship_suggestion")
    op.drop_table("relationship")
    op.drop_table("person")
    op.drop_table("user")
    gender.drop(op.get_bind(), checkfirst=True)
