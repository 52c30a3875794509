"""Create authorities, issues and issue_images tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "authorities",
        sa.Column("username", sa.String(64), primary_key=True),
        sa.Column(
            "authority",
            sa.Enum("ROLE_RESIDENT", "ROLE_HOST", name="authority_role"),
            nullable=False,
            index=True,
        ),
    )

    op.create_table(
        "issues",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("report_date", sa.Date, nullable=False),
        sa.Column("confirmed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("closed_date", sa.Date, nullable=True),
        sa.Column("resident_username", sa.String(64), nullable=False, index=True),
        sa.CheckConstraint(
            "closed_date IS NULL OR confirmed", name="ck_issues_closed_requires_confirmed"
        ),
    )
    op.create_index(
        "ix_issues_bucket_report_date", "issues", ["confirmed", "closed_date", "report_date"]
    )
    op.create_index(
        "ix_issues_resident_bucket", "issues", ["resident_username", "confirmed", "closed_date"]
    )

    op.create_table(
        "issue_images",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("url", sa.String(1024), nullable=False),
        sa.Column(
            "issue_id",
            sa.Integer,
            sa.ForeignKey("issues.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )


def downgrade() -> None:
    op.drop_table("issue_images")
    op.drop_index("ix_issues_resident_bucket", table_name="issues")
    op.drop_index("ix_issues_bucket_report_date", table_name="issues")
    op.drop_table("issues")
    op.drop_table("authorities")
    sa.Enum(name="authority_role").drop(op.get_bind(), checkfirst=True)
