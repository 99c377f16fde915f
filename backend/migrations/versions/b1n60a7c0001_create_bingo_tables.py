"""create user, game_session and game_history tables

Revision ID: b1n60a7c0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b1n60a7c0001'
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
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('phone', sa.String(length=32), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('wallet', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('daily_earnings', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('weekly_earnings', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('total_earnings', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('earnings_updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_user_phone', 'user', ['phone'], unique=True)

    if 'game_session' not in existing_tables:
        op.create_table(
            'game_session',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('card_number', sa.Integer(), nullable=False),
            sa.Column('bet_amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_game_session_user_id', 'game_session', ['user_id'])
        op.create_index('ix_game_session_bet_amount', 'game_session', ['bet_amount'])
        op.create_index('ix_game_session_status', 'game_session', ['status'])

    if 'game_history' not in existing_tables:
        op.create_table(
            'game_history',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('winner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('winner_card', sa.Integer(), nullable=False),
            sa.Column('prize', sa.Numeric(12, 2), nullable=False),
            sa.Column('prize_pool', sa.Numeric(12, 2), nullable=False),
            sa.Column('number_of_players', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('bet_amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('total_winners', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_game_history_winner_id', 'game_history', ['winner_id'])
        op.create_index('ix_game_history_bet_amount', 'game_history', ['bet_amount'])


def downgrade():
    op.drop_table('game_history')
    op.drop_table('game_session')
    op.drop_table('user')
