"""Hook invocation logs

Revision ID: 0001_hook_logs
Revises: 
Create Date: 2026-10-18

Creates nc_hook_logs_v2, the append-only webhook invocation log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_hook_logs'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the hook log table."""
    op.create_table(
        'nc_hook_logs_v2',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('fk_hook_id', sa.String(64), nullable=False),
        sa.Column('base_id', sa.String(64), nullable=True),
        sa.Column('fk_workspace_id', sa.String(64), nullable=True),
        sa.Column('event', sa.String(32), nullable=True),
        sa.Column('operation', sa.String(32), nullable=True),
        sa.Column('type', sa.String(64), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('response', sa.Text(), nullable=True),
        sa.Column('error_code', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('triggered_by', sa.String(255), nullable=True),
        sa.Column('conditions', sa.Text(), nullable=True),
        sa.Column('execution_time', sa.String(32), nullable=True),
        sa.Column('test_call', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_nc_hook_logs_v2')),
    )
    op.create_index(
        'idx_hook_logs_hook_created', 'nc_hook_logs_v2', ['fk_hook_id', 'created_at']
    )


def downgrade() -> None:
    op.drop_index('idx_hook_logs_hook_created', table_name='nc_hook_logs_v2')
    op.drop_table('nc_hook_logs_v2')
