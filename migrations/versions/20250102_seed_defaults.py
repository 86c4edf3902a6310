"""
Seed the default onboarding steps and branding settings.
"""
import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from retailhub.db.repositories.onboarding import DEFAULT_STEPS

# revision identifiers, used by Alembic.
revision = 'seed_defaults_20250102'
down_revision = 'initial_20250101'
branch_labels = None
depends_on = None

DEFAULT_SETTINGS = {
    'business_name': 'RetailHub',
    'logo_url': None,
}

onboarding_steps = sa.table(
    'onboarding_steps',
    sa.column('id', postgresql.UUID(as_uuid=True)),
    sa.column('step_number', sa.Integer),
    sa.column('step_key', sa.String),
    sa.column('title', sa.String),
    sa.column('description', sa.Text),
    sa.column('component_name', sa.String),
    sa.column('is_required', sa.Boolean),
    sa.column('estimated_time_minutes', sa.Integer),
    sa.column('reward_points', sa.Integer),
    sa.column('order_index', sa.Integer),
    sa.column('is_active', sa.Boolean),
)

settings = sa.table(
    'settings',
    sa.column('id', postgresql.UUID(as_uuid=True)),
    sa.column('key', sa.String),
    sa.column('value', postgresql.JSONB),
)


def upgrade() -> None:
    op.bulk_insert(
        onboarding_steps,
        [{'id': uuid.uuid4(), 'is_active': True, **step} for step in DEFAULT_STEPS],
    )
    op.bulk_insert(
        settings,
        [{'id': uuid.uuid4(), 'key': key, 'value': value} for key, value in DEFAULT_SETTINGS.items()],
    )


def downgrade() -> None:
    keys = ", ".join(f"'{step['step_key']}'" for step in DEFAULT_STEPS)
    op.execute(f"DELETE FROM onboarding_steps WHERE step_key IN ({keys})")
    op.execute("DELETE FROM settings WHERE key IN ('business_name', 'logo_url')")
