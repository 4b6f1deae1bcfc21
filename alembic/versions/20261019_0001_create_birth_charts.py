# mypy: ignore-errors
"""
Migration Alembic pour créer la table birth_charts.

Cette migration crée la table des thèmes calculés, unique par clé d'identité (`input_hash`), avec
les compteurs d'accès utilisés par les statistiques du cache.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Crée la table birth_charts et ses index."""
    op.create_table(
        "birth_charts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("input_hash", sa.String(length=64), nullable=False),
        sa.Column("params", sa.JSON(), nullable=False),
        sa.Column("birth", sa.JSON(), nullable=True),
        sa.Column("chart_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("access_count", sa.Integer(), nullable=False),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("input_hash", name="uq_birth_charts_input_hash"),
    )
    op.create_index(
        "ix_birth_charts_access", "birth_charts", ["access_count", "last_accessed_at"]
    )
    op.create_index("ix_birth_charts_created_at", "birth_charts", ["created_at"])


def downgrade() -> None:
    """Supprime la table birth_charts."""
    op.drop_index("ix_birth_charts_created_at", table_name="birth_charts")
    op.drop_index("ix_birth_charts_access", table_name="birth_charts")
    op.drop_table("birth_charts")
