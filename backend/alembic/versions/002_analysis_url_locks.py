"""Per (owner, url) lock rows for plan saves

Revision ID: 002_analysis_url_locks
Revises: 001_initial_siteplan
Create Date: 2026-10-19

Creates:
- analysis_url_locks: one row per (owner, url), locked while a plan is saved
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_analysis_url_locks'
down_revision = '001_initial_siteplan'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'analysis_url_locks',
        sa.Column('owner_key', sa.String(length=255), nullable=False),
        sa.Column('url', sa.String(length=2048), nullable=False),
        sa.PrimaryKeyConstraint('owner_key', 'url'),
    )

    # Anonymous analyses use the empty owner key
    op.execute(
        "INSERT INTO analysis_url_locks (owner_key, url) "
        "SELECT DISTINCT COALESCE(owner_id, ''), url FROM analyses"
    )


def downgrade() -> None:
    op.drop_table('analysis_url_locks')
