"""Initial analyses and tasks tables

Revision ID: 001_initial_siteplan
Revises:
Create Date: 2026-10-19

Creates:
- analyses: one row per analysis run, with the attached action plan
- tasks: action plan tasks, cascading from analyses
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_siteplan'
down_revision = None
branch_labels = None
depends_on = None


TASK_CATEGORY = ('seo', 'content', 'performance', 'accessibility')
TASK_PRIORITY = ('high', 'medium', 'low')
TASK_EFFORT = ('quick', 'moderate', 'significant')
TASK_IMPACT = ('low', 'medium', 'high')
TASK_STATUS = ('pending', 'in_progress', 'completed', 'skipped')


def upgrade() -> None:
    # ==========================================================================
    # Analyses
    # ==========================================================================

    op.create_table(
        'analyses',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=True),
        sa.Column('url', sa.String(length=2048), nullable=False),
        sa.Column('snapshot', sa.JSON(), nullable=False),
        sa.Column('analysis', sa.JSON(), nullable=False),
        sa.Column('plan_summary', sa.Text(), nullable=True),
        sa.Column('plan_timeline', sa.Text(), nullable=True),
        sa.Column('quick_wins', sa.JSON(), nullable=True),
        sa.Column('plan_generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('analyzed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_analyses_owner_id', 'analyses', ['owner_id'], unique=False)
    op.create_index('ix_analyses_url', 'analyses', ['url'], unique=False)
    op.create_index('ix_analyses_analyzed_at', 'analyses', ['analyzed_at'], unique=False)
    op.create_index(
        'ix_analyses_owner_url_analyzed', 'analyses', ['owner_id', 'url', 'analyzed_at'], unique=False
    )

    # ==========================================================================
    # Tasks
    # ==========================================================================

    op.create_table(
        'tasks',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('analysis_id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=True),
        sa.Column('external_ref', sa.String(length=100), nullable=True),
        sa.Column('category', sa.Enum(*TASK_CATEGORY, name='taskcategory'), nullable=False),
        sa.Column('priority', sa.Enum(*TASK_PRIORITY, name='taskpriority'), nullable=False),
        sa.Column('effort', sa.Enum(*TASK_EFFORT, name='taskeffort'), nullable=False),
        sa.Column('impact', sa.Enum(*TASK_IMPACT, name='taskimpact'), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('estimated_time', sa.String(length=100), nullable=True),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum(*TASK_STATUS, name='taskstatus'), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('last_reanalysis', sa.JSON(), nullable=True),
        sa.Column('last_reanalysis_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_analysis_id', 'tasks', ['analysis_id'], unique=False)
    op.create_index('ix_tasks_owner_id', 'tasks', ['owner_id'], unique=False)
    op.create_index('ix_tasks_priority', 'tasks', ['priority'], unique=False)
    op.create_index('ix_tasks_status', 'tasks', ['status'], unique=False)


def downgrade() -> None:
    op.drop_table('tasks')
    op.drop_table('analyses')

    # Enum types only exist as named types on PostgreSQL
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("DROP TYPE IF EXISTS taskstatus")
        op.execute("DROP TYPE IF EXISTS taskimpact")
        op.execute("DROP TYPE IF EXISTS taskeffort")
        op.execute("DROP TYPE IF EXISTS taskpriority")
        op.execute("DROP TYPE IF EXISTS taskcategory")
