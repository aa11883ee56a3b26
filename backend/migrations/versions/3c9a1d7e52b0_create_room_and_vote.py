"""create room and vote tables

Revision ID: 3c9a1d7e52b0
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9a1d7e52b0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('id', sa.String(length=16), primary_key=True),
            sa.Column('snapshot', sa.Text(), nullable=False),
            sa.Column('revision', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('manage_key_hash', sa.String(length=128), nullable=True),
            sa.Column('host_name', sa.String(length=64), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=True),
            sa.Column('player_count', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=False),
            sa.Column('last_pick_at', sa.Float(), nullable=True),
        )
        op.create_index('ix_room_status', 'room', ['status'], unique=False)
        op.create_index('ix_room_updated_at', 'room', ['updated_at'], unique=False)

    if 'vote' not in existing_tables:
        op.create_table(
            'vote',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('room_id', sa.String(length=16), sa.ForeignKey('room.id'), nullable=False),
            sa.Column('identity_hash', sa.String(length=64), nullable=False),
            sa.Column('first_choice', sa.String(length=16), nullable=True),
            sa.Column('second_choice', sa.String(length=16), nullable=True),
            sa.Column('third_choice', sa.String(length=16), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.UniqueConstraint('room_id', 'identity_hash', name='uq_vote_room_identity'),
        )
        op.create_index('ix_vote_room_id', 'vote', ['room_id'], unique=False)


def downgrade():
    op.drop_index('ix_vote_room_id', table_name='vote')
    op.drop_table('vote')
    op.drop_index('ix_room_updated_at', table_name='room')
    op.drop_index('ix_room_status', table_name='room')
    op.drop_table('room')
