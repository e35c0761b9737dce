"""create live quiz tables

Revision ID: 4c9d2e7a1b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c9d2e7a1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'quiz',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('ranking_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('speed_bonus_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('speed_bonus_points', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('speed_bonus_step_seconds', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('speed_bonus_points_per_step', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('options_json', sa.Text(), nullable=True),
        sa.Column('correct_answer_json', sa.Text(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('time_limit_seconds', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('media_type', sa.String(length=16), nullable=True),
        sa.Column('media_url', sa.String(length=512), nullable=True),
        sa.UniqueConstraint('quiz_id', 'position', name='uq_question_quiz_position'),
    )
    op.create_index('ix_question_quiz_id', 'question', ['quiz_id'])

    op.create_table(
        'quiz_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('access_code', sa.String(length=6), nullable=False),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('current_question_position', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_question_started_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_quiz_session_quiz_id', 'quiz_session', ['quiz_id'])
    op.create_index('ix_quiz_session_access_code', 'quiz_session', ['access_code'])

    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('pseudo', sa.String(length=50), nullable=False),
        sa.Column('session_token', sa.String(length=64), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_participant_session_id', 'participant', ['session_id'])
    op.create_index('ix_participant_session_token', 'participant', ['session_token'], unique=True)

    op.create_table(
        'score',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('participant.id'), nullable=False, unique=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_score_session_id', 'score', ['session_id'])

    op.create_table(
        'response',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('participant.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('answer_json', sa.Text(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('response_time_seconds', sa.Float(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('speed_bonus_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('participant_id', 'question_id', name='uq_response_participant_question'),
    )
    op.create_index('ix_response_participant_id', 'response', ['participant_id'])
    op.create_index('ix_response_question_id', 'response', ['question_id'])


def downgrade():
    op.drop_table('response')
    op.drop_table('score')
    op.drop_table('participant')
    op.drop_table('quiz_session')
    op.drop_table('question')
    op.drop_table('quiz')
    op.drop_table('user')
