"""create user and user_stats tables

Revision ID: 3c7a91d0e5b2
Revises:
Create Date: 2026-10-19 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7a91d0e5b2'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.String(length=64), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('display_name', sa.String(length=64), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('last_seen', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_user_username', 'user', ['username'])

    if 'user_stats' not in existing_tables:
        op.create_table(
            'user_stats',
            sa.Column('user_id', sa.String(length=64), sa.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('wins', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('highest_round_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('farkles_count', sa.Integer(), nullable=False, server_default='0'),
        )


def downgrade():
    op.drop_table('user_stats')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
