"""create repos table

Revision ID: 3f1c2a9d7e41
Revises:
Create Date: 2026-01-12 10:14:03.512871

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'repos',
        sa.Column('owner_key', sa.String(length=255), primary_key=True),
        sa.Column('name_key', sa.String(length=255), primary_key=True),
        sa.Column('owner', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=511), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('language', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_grade', sa.String(length=1), nullable=False, server_default='F'),
        sa.Column('scores_by_model', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('data_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('data', sa.JSON(), nullable=False),
    )

    op.create_index(op.f('ix_repos_category'), 'repos', ['category'])
    op.create_index(op.f('ix_repos_featured'), 'repos', ['featured'])
    op.create_index(op.f('ix_repos_stars'), 'repos', ['stars'])
    op.create_index(op.f('ix_repos_best_score'), 'repos', ['best_score'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_repos_best_score'), table_name='repos')
    op.drop_index(op.f('ix_repos_stars'), table_name='repos')
    op.drop_index(op.f('ix_repos_featured'), table_name='repos')
    op.drop_index(op.f('ix_repos_category'), table_name='repos')
    op.drop_table('repos')
