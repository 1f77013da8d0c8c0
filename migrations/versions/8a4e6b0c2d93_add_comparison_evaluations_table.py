"""add comparison evaluations table

Revision ID: 8a4e6b0c2d93
Revises: 3f1c2a9d7e41
Create Date: 2026-01-19 16:42:27.090114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8a4e6b0c2d93'
down_revision: Union[str, None] = '3f1c2a9d7e41'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'comparison_evaluations',
        sa.Column('id', sa.String(length=16), primary_key=True),
        sa.Column('repos', sa.JSON(), nullable=False),
        sa.Column('repos_count', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('evaluation', sa.JSON(), nullable=False),
        sa.Column('model_used', sa.String(length=100), nullable=True),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_index(op.f('ix_comparison_evaluations_repos_count'), 'comparison_evaluations', ['repos_count'])
    op.create_index(op.f('ix_comparison_evaluations_category'), 'comparison_evaluations', ['category'])
    op.create_index(op.f('ix_comparison_evaluations_expires_at'), 'comparison_evaluations', ['expires_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_comparison_evaluations_expires_at'), table_name='comparison_evaluations')
    op.drop_index(op.f('ix_comparison_evaluations_category'), table_name='comparison_evaluations')
    op.drop_index(op.f('ix_comparison_evaluations_repos_count'), table_name='comparison_evaluations')
    op.drop_table('comparison_evaluations')
