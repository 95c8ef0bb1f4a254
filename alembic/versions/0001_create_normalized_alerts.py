"""Create normalized_alerts table

Revision ID: 0001_create_normalized_alerts
Revises:
Create Date: 2024-06-15

One row per (source, external_id). The hash column is compared on upsert
so unchanged alerts are not rewritten.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0001_create_normalized_alerts'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    op.create_table(
        'normalized_alerts',
        sa.Column('source', sa.String(32), primary_key=True, comment='FDA, FSIS, CDC, EPA or REGULATIONS_GOV'),
        sa.Column('external_id', sa.String(255), primary_key=True, comment='Normalized upstream identifier'),
        sa.Column('hash', sa.String(64), nullable=False, comment='sha256 of source, id and effective timestamp'),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('link_url', sa.Text(), nullable=True),
        sa.Column('date_published', sa.DateTime(timezone=True), nullable=False),
        sa.Column('date_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('jurisdiction', sa.String(100), nullable=True),
        sa.Column('locations', JSON_TYPE, nullable=False),
        sa.Column('product_types', JSON_TYPE, nullable=False),
        sa.Column('category', sa.String(32), nullable=True),
        sa.Column('severity', sa.Integer(), nullable=True),
        sa.Column('raw', JSON_TYPE, nullable=False),
        sa.Column('ingested_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_index('ix_normalized_alerts_hash', 'normalized_alerts', ['hash'])
    op.create_index('ix_normalized_alerts_date_published', 'normalized_alerts', ['date_published'])


def downgrade() -> None:
    op.drop_index('ix_normalized_alerts_date_published', 'normalized_alerts')
    op.drop_index('ix_normalized_alerts_hash', 'normalized_alerts')
    op.drop_table('normalized_alerts')
