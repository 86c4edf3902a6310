"""
Indexed click-tracking links and per-step onboarding completions.

- commercial_email_click_links replaces scanning click_tracking_ids JSON
- onboarding_step_completions makes step rewards idempotent
- Both tables are backfilled from the existing JSON columns
- Visit counters on prospect_invitation_codes
"""
import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'links_completions_20250103'
down_revision = 'seed_defaults_20250102'
branch_labels = None
depends_on = None

queue = sa.table(
    'commercial_email_queue',
    sa.column('id', postgresql.UUID(as_uuid=True)),
    sa.column('click_tracking_ids', postgresql.JSONB()),
)

progress = sa.table(
    'onboarding_progress',
    sa.column('profile_id', postgresql.UUID(as_uuid=True)),
    sa.column('steps_completed', postgresql.JSONB()),
)


def upgrade() -> None:
    op.create_table(
        'commercial_email_click_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'queue_item_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('commercial_email_queue.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('tracking_id', sa.String(64), nullable=False),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index(
        'ix_commercial_email_click_links_tracking_id', 'commercial_email_click_links', ['tracking_id'], unique=True
    )
    op.create_index(
        'ix_commercial_email_click_links_queue_item_id', 'commercial_email_click_links', ['queue_item_id']
    )

    op.create_table(
        'onboarding_step_completions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'profile_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('profiles.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('step_key', sa.String(50), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('profile_id', 'step_key', name='uq_onboarding_step_completions_profile_step'),
    )

    op.add_column('prospect_invitation_codes', sa.Column('visits_count', sa.Integer(), nullable=False, server_default='0'))
    op.add_column('prospect_invitation_codes', sa.Column('last_visited_at', sa.DateTime(timezone=True)))

    bind = op.get_bind()
    links = []
    for item_id, click_ids in bind.execute(sa.select(queue.c.id, queue.c.click_tracking_ids)):
        for tracking_id, url in (click_ids or {}).items():
            links.append({'id': uuid.uuid4(), 'queue_item_id': item_id, 'tracking_id': tracking_id, 'original_url': url})
    if links:
        op.bulk_insert(sa.table(
            'commercial_email_click_links',
            sa.column('id', postgresql.UUID(as_uuid=True)),
            sa.column('queue_item_id', postgresql.UUID(as_uuid=True)),
            sa.column('tracking_id', sa.String),
            sa.column('original_url', sa.Text),
        ), links)

    completions = []
    for profile_id, steps in bind.execute(sa.select(progress.c.profile_id, progress.c.steps_completed)):
        # Historic points stay on onboarding_progress.total_points
        for step_key in dict.fromkeys(steps or []):
            completions.append({'id': uuid.uuid4(), 'profile_id': profile_id, 'step_key': step_key})
    if completions:
        op.bulk_insert(sa.table(
            'onboarding_step_completions',
            sa.column('id', postgresql.UUID(as_uuid=True)),
            sa.column('profile_id', postgresql.UUID(as_uuid=True)),
            sa.column('step_key', sa.String),
        ), completions)


def downgrade() -> None:
    op.drop_column('prospect_invitation_codes', 'last_visited_at')
    op.drop_column('prospect_invitation_codes', 'visits_count')
    op.drop_table('onboarding_step_completions')
    op.drop_index('ix_commercial_email_click_links_queue_item_id', table_name='commercial_email_click_links')
    op.drop_index('ix_commercial_email_click_links_tracking_id', table_name='commercial_email_click_links')
    op.drop_table('commercial_email_click_links')
