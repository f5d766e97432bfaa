"""
001 - Initial schema: score + assessment audit tables

Revision ID: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS rwa_engine")

    op.create_table(
        "opportunity_score_audit",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.String(100), nullable=False),

        sa.Column("overall_score", sa.Float, nullable=False),
        sa.Column("risk_adjusted_return", sa.Float, nullable=False),
        sa.Column("compliance_score", sa.Float, nullable=False),
        sa.Column("confidence", sa.Float, nullable=False),
        sa.Column("action", sa.String(20), nullable=False),

        sa.Column("result_payload", JSON, nullable=False),

        sa.Column("requested_by", sa.String(100), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),

        schema="rwa_engine",
    )
    op.create_index("ix_opportunity_score_audit_entity_id", "opportunity_score_audit", ["entity_id"], schema="rwa_engine")
    op.create_index("ix_opportunity_score_audit_scored_at", "opportunity_score_audit", ["scored_at"], schema="rwa_engine")

    op.create_table(
        "compliance_assessment_audit",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("jurisdiction", sa.String(50), nullable=False),

        sa.Column("overall_score", sa.Float, nullable=False),
        sa.Column("compliance_level", sa.String(20), nullable=False),
        sa.Column("risk_level", sa.String(10), nullable=False),
        sa.Column("violations_count", sa.Integer, nullable=False),

        sa.Column("assessment_payload", JSON, nullable=False),

        sa.Column("requested_by", sa.String(100), nullable=True),
        sa.Column("assessed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),

        schema="rwa_engine",
    )
    op.create_index("ix_compliance_assessment_audit_entity_id", "compliance_assessment_audit", ["entity_id"], schema="rwa_engine")
    op.create_index("ix_compliance_assessment_audit_jurisdiction", "compliance_assessment_audit", ["jurisdiction"], schema="rwa_engine")
    op.create_index("ix_compliance_assessment_audit_risk_level", "compliance_assessment_audit", ["risk_level"], schema="rwa_engine")


def downgrade() -> None:
    op.drop_table("compliance_assessment_audit", schema="rwa_engine")
    op.drop_table("opportunity_score_audit", schema="rwa_engine")
