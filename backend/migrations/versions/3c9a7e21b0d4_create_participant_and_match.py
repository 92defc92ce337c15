"""create participant and match tables

Revision ID: 3c9a7e21b0d4
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9a7e21b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'participant' not in existing_tables:
        op.create_table(
            'participant',
            sa.Column('id', sa.String(length=32), primary_key=True),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
        )

    if 'match' not in existing_tables:
        op.create_table(
            'match',
            sa.Column('id', sa.String(length=32), primary_key=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
            sa.Column('winner', sa.String(length=64), nullable=True),
            sa.Column('player1', sa.JSON(), nullable=False),
            sa.Column('player2', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
        )
        op.create_index('ix_match_status', 'match', ['status'])


def downgrade():
    op.drop_index('ix_match_status', table_name='match')
    op.drop_table('match')
    op.drop_table('participant')
