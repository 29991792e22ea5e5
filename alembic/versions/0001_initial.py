"""Initial migration

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create extensions
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto;')

    # Create users table
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('wallet_balance', sa.Numeric(precision=30, scale=8), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.CheckConstraint('wallet_balance >= 0', name='chk_wallet_nonneg')
    )

    # Create matches table
    op.create_table('matches',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('external_id', sa.String(length=128), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='scheduled'),
        sa.Column('start_time', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_time', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )

    # Create player_statistics table
    op.create_table('player_statistics',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('match_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('player_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('runs', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wickets', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('catches', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('points', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('match_id', 'player_id', name='uq_match_player_stat')
    )

    # Create fantasy_teams table
    op.create_table('fantasy_teams',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('match_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE')
    )

    # Create fantasy_team_players table
    op.create_table('fantasy_team_players',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('player_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('is_captain', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('is_vice_captain', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['team_id'], ['fantasy_teams.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('team_id', 'player_id', name='uq_team_player')
    )

    # Create contests table
    op.create_table('contests',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('match_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('entry_fee', sa.Numeric(precision=30, scale=8), nullable=False, server_default='0'),
        sa.Column('total_spots', sa.Integer(), nullable=False),
        sa.Column('total_prize', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('first_prize', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('winner_count', sa.Integer(), nullable=False),
        sa.Column('prize_structure', sa.String(length=32), nullable=False, server_default='balanced'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='open'),
        sa.Column('finalized_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE')
    )

    # Create contest_entries table
    op.create_table('contest_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('fantasy_team_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('points', sa.Numeric(precision=10, scale=1), nullable=True),
        sa.Column('win_amount', sa.Numeric(precision=30, scale=8), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['fantasy_team_id'], ['fantasy_teams.id']),
        sa.UniqueConstraint('contest_id', 'fantasy_team_id', name='uq_contest_team')
    )

    # Create prize_breakups table
    op.create_table('prize_breakups',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rank', sa.String(length=32), nullable=False),
        sa.Column('rank_start', sa.Integer(), nullable=False),
        sa.Column('rank_end', sa.Integer(), nullable=False),
        sa.Column('prize_amount', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('contest_id', 'rank', name='uq_contest_prize_rank')
    )

    # Create transactions table
    op.create_table('transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('tx_type', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='completed'),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('entry_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'entry_id', 'tx_type', name='uq_tx_user_entry_type')
    )
    op.create_index('idx_transactions_type_entry', 'transactions', ['tx_type', 'entry_id'])

    # Create failed_payouts table
    op.create_table('failed_payouts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='error_log'),
        sa.Column('entry_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('win_amount', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('replayed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key')
    )
    op.create_index('idx_failed_payouts_status', 'failed_payouts', ['status'])

    # Create audit_logs table
    op.create_table('audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('actor', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_index('idx_failed_payouts_status', table_name='failed_payouts')
    op.drop_table('failed_payouts')
    op.drop_index('idx_transactions_type_entry', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('prize_breakups')
    op.drop_table('contest_entries')
    op.drop_table('contests')
    op.drop_table('fantasy_team_players')
    op.drop_table('fantasy_teams')
    op.drop_table('player_statistics')
    op.drop_table('matches')
    op.drop_table('users')
