"""initial schema: cases, votes, verification codes

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "cases",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("actions", sa.String(300), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reported_by", sa.String(255), nullable=True),
        sa.Column("verdict_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("guilty_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("not_guilty_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_voted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_case_name", "cases", ["name"])
    op.create_index("idx_case_email", "cases", ["email"])
    op.create_index("idx_case_phone", "cases", ["phone"])
    op.create_index("idx_case_verdict", "cases", ["verdict_score"])
    op.create_index("idx_case_created_at", "cases", [sa.text("created_at DESC")])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("voter_identity", sa.String(300), nullable=False),
        sa.Column("case_id", sa.Integer(), sa.ForeignKey("cases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("choice", sa.Enum("guilty", "not_guilty", name="vote_choice"), nullable=False),
        sa.Column("cast_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("voter_identity", "case_id", name="uq_vote_voter_case"),
    )
    op.create_index("idx_vote_case", "votes", ["case_id"])

    op.create_table(
        "verification_codes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email_hash", sa.String(64), nullable=False),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_verification_email_hash", "verification_codes", ["email_hash"])
    op.create_index("idx_verification_expires_at", "verification_codes", ["expires_at"])
    op.create_index("idx_verification_ip", "verification_codes", ["ip_address"])


def downgrade() -> None:
    op.drop_table("verification_codes")
    op.drop_index("idx_vote_case", table_name="votes")
    op.drop_table("votes")
    op.drop_table("cases")
    sa.Enum(name="vote_choice").drop(op.get_bind(), checkfirst=True)
