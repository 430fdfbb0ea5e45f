"""Initial schema: teachers, notification cycles, report statuses

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create teachers table
    op.create_table(
        'teachers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('telegram_id', sa.BigInteger(), nullable=False),
        sa.Column('first_name', sa.String(255), nullable=False),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_teachers_id', 'teachers', ['id'], unique=False)
    op.create_index('ix_teachers_telegram_id', 'teachers', ['telegram_id'], unique=True)
    op.create_index('ix_teachers_is_active', 'teachers', ['is_active'], unique=False)

    # Create notification_cycles table
    op.create_table(
        'notification_cycles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cycle_date', sa.Date(), nullable=False),
        sa.Column('cycle_type', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cycle_date', 'cycle_type', name='uq_cycle_date_type')
    )
    op.create_index('ix_notification_cycles_id', 'notification_cycles', ['id'], unique=False)

    # Create teacher_report_statuses table
    op.create_table(
        'teacher_report_statuses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('teacher_id', sa.Integer(), nullable=False),
        sa.Column('cycle_id', sa.Integer(), nullable=False),
        sa.Column('report_key', sa.String(100), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('last_notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('remind_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('response_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cycle_id'], ['notification_cycles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('teacher_id', 'cycle_id', 'report_key', name='uq_teacher_cycle_report')
    )
    op.create_index('ix_teacher_report_statuses_id', 'teacher_report_statuses', ['id'], unique=False)
    op.create_index('ix_teacher_report_statuses_cycle_id', 'teacher_report_statuses', ['cycle_id'], unique=False)
    op.create_index('ix_report_status_teacher_cycle', 'teacher_report_statuses', ['teacher_id', 'cycle_id'], unique=False)
    # Polled by the 1-hour reminder sweep
    op.create_index('ix_report_status_status_remind_at', 'teacher_report_statuses', ['status', 'remind_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_report_status_status_remind_at', table_name='teacher_report_statuses')
    op.drop_index('ix_report_status_teacher_cycle', table_name='teacher_report_statuses')
    op.drop_index('ix_teacher_report_statuses_cycle_id', table_name='teacher_report_statuses')
    op.drop_index('ix_teacher_report_statuses_id', table_name='teacher_report_statuses')
    op.drop_table('teacher_report_statuses')

    op.drop_index('ix_notification_cycles_id', table_name='notification_cycles')
    op.drop_table('notification_cycles')

    op.drop_index('ix_teachers_is_active', table_name='teachers')
    op.drop_index('ix_teachers_telegram_id', table_name='teachers')
    op.drop_index('ix_teachers_id', table_name='teachers')
    op.drop_table('teachers')
