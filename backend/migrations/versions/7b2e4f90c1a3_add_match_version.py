"""add version counter to match

Revision ID: 7b2e4f90c1a3
Revises: 3c9a7e21b0d4
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7b2e4f90c1a3'
down_revision = '3c9a7e21b0d4'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('match')}
    with op.batch_alter_table('match') as batch_op:
        if 'version' not in cols:
            batch_op.add_column(sa.Column('version', sa.Integer(), nullable=False, server_default='0'))


def downgrade():
    with op.batch_alter_table('match') as batch_op:
        batch_op.drop_column('version')
