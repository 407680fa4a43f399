"""create game and player tables

Revision ID: 4c7d2e91a0b1
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7d2e91a0b1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('host_id', sa.Integer(), nullable=True),
        sa.Column('winner_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_game_code'), 'game', ['code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('name_key', sa.String(length=64), nullable=False),
        sa.Column('secret_code', sa.String(length=64), nullable=False),
        sa.Column('auth_token', sa.String(length=64), nullable=False),
        sa.Column('is_alive', sa.Boolean(), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['game.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_id'], ['player.id'], name='fk_player_target_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'name_key', name='uq_player_game_name'),
    )
    op.create_index(op.f('ix_player_game_id'), 'player', ['game_id'], unique=False)
    op.create_index(op.f('ix_player_secret_code'), 'player', ['secret_code'], unique=True)
    op.create_index(op.f('ix_player_auth_token'), 'player', ['auth_token'], unique=True)

    # game <-> player reference each other; add the game side once both exist
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_foreign_key('fk_game_host_id', 'player', ['host_id'], ['id'])
        batch_op.create_foreign_key('fk_game_winner_id', 'player', ['winner_id'], ['id'])


def downgrade():
    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_constraint('fk_game_winner_id', type_='foreignkey')
        batch_op.drop_constraint('fk_game_host_id', type_='foreignkey')
    op.drop_index(op.f('ix_player_auth_token'), table_name='player')
    op.drop_index(op.f('ix_player_secret_code'), table_name='player')
    op.drop_index(op.f('ix_player_game_id'), table_name='player')
    op.drop_table('player')
    op.drop_index(op.f('ix_game_code'), table_name='game')
    op.drop_table('game')
