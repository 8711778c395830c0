"""create_exam_engine_tables

Revision ID: 0001_create_exam_engine_tables
Revises:
Create Date: 2026-10-16 09:00:00.000000

Creates the exam engine schema:
- students: read-only roster mirror used to validate marks
- grading_scales / grade_bands: versioned percentage bands
- exams / exam_subjects: exam schedule and lifecycle
- marks: raw scores, one row per (exam subject, student)
- published_results / published_subject_results: graded, ranked rollups
- audit_logs: append-only action history
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_create_exam_engine_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


EXAM_TYPES = ('CLASS_TEST', 'MIDTERM', 'FINAL', 'QUIZ', 'PRACTICAL', 'ASSIGNMENT')
EXAM_STATUSES = ('DRAFT', 'SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'RESULTS_PUBLISHED')
AUDIT_ACTIONS = (
    'EXAM_CREATED', 'EXAM_UPDATED', 'EXAM_DELETED', 'EXAM_STATUS_CHANGED',
    'EXAM_SUBJECT_ADDED', 'EXAM_SUBJECT_UPDATED', 'EXAM_SUBJECT_REMOVED',
    'MARKS_ENTERED', 'MARKS_IMPORTED',
    'GRADING_SCALE_CREATED', 'GRADING_SCALE_DELETED',
    'RESULTS_PUBLISHED',
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    ]


def _tenant_columns() -> list[sa.Column]:
    return [
        sa.Column('tenant_id', sa.BigInteger(), nullable=False),
        sa.Column('branch_id', sa.BigInteger(), nullable=True),
    ]


def upgrade() -> None:
    """Create all exam engine tables."""
    print("📚 Creating exam engine tables...")

    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column('student_name', sa.String(length=255), nullable=False),
        sa.Column('roll_number', sa.String(length=50), nullable=True),
        sa.Column('class_name', sa.String(length=50), nullable=False),
        sa.Column('section', sa.String(length=50), nullable=True),
        sa.Column('is_enrolled', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_tenant_id', 'students', ['tenant_id'])
    op.create_index('ix_students_branch_id', 'students', ['branch_id'])

    op.create_table(
        'grading_scales',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'name', 'version', name='uq_grading_scale_version'),
    )
    op.create_index('ix_grading_scales_tenant_id', 'grading_scales', ['tenant_id'])
    op.create_index('ix_grading_scales_branch_id', 'grading_scales', ['branch_id'])
    op.create_index('ix_grading_scales_name', 'grading_scales', ['name'])

    op.create_table(
        'grade_bands',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('grading_scale_id', sa.BigInteger(), nullable=False),
        sa.Column('min_percentage', sa.DECIMAL(precision=6, scale=2), nullable=False),
        sa.Column('max_percentage', sa.DECIMAL(precision=6, scale=2), nullable=False),
        sa.Column('grade', sa.String(length=10), nullable=False),
        sa.Column('grade_point', sa.DECIMAL(precision=6, scale=2), nullable=False),
        sa.Column('description', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['grading_scale_id'], ['grading_scales.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_grade_bands_grading_scale_id', 'grade_bands', ['grading_scale_id'])

    op.create_table(
        'exams',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column('term_id', sa.BigInteger(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('exam_type', sa.Enum(*EXAM_TYPES, name='examtype'), nullable=False),
        sa.Column('status', sa.Enum(*EXAM_STATUSES, name='examstatus'), nullable=False, server_default='DRAFT'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('grading_scale_id', sa.BigInteger(), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['grading_scale_id'], ['grading_scales.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_exams_tenant_id', 'exams', ['tenant_id'])
    op.create_index('ix_exams_branch_id', 'exams', ['branch_id'])
    op.create_index('ix_exams_term_id', 'exams', ['term_id'])
    op.create_index('ix_exams_name', 'exams', ['name'])
    op.create_index('ix_exams_status', 'exams', ['status'])

    op.create_table(
        'exam_subjects',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_name', sa.String(length=100), nullable=False),
        sa.Column('exam_date', sa.Date(), nullable=True),
        sa.Column('total_marks', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('passing_marks', sa.DECIMAL(precision=10, scale=2), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'subject_id', name='uq_exam_subject'),
    )
    op.create_index('ix_exam_subjects_exam_id', 'exam_subjects', ['exam_id'])

    op.create_table(
        'marks',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('exam_subject_id', sa.BigInteger(), nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('marks_obtained', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.Column('is_absent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('remarks', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['exam_subject_id'], ['exam_subjects.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_subject_id', 'student_id', name='uq_mark_subject_student'),
    )
    op.create_index('ix_marks_exam_subject_id', 'marks', ['exam_subject_id'])
    op.create_index('ix_marks_student_id', 'marks', ['student_id'])

    op.create_table(
        'published_results',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('total_marks', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('obtained_marks', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('percentage', sa.DECIMAL(precision=6, scale=2), nullable=False),
        sa.Column('grade', sa.String(length=10), nullable=False),
        sa.Column('grade_point', sa.DECIMAL(precision=6, scale=2), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('grading_scale_id', sa.BigInteger(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['grading_scale_id'], ['grading_scales.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'student_id', name='uq_published_result_exam_student'),
    )
    op.create_index('ix_published_results_tenant_id', 'published_results', ['tenant_id'])
    op.create_index('ix_published_results_branch_id', 'published_results', ['branch_id'])
    op.create_index('ix_published_results_exam_id', 'published_results', ['exam_id'])
    op.create_index('ix_published_results_student_id', 'published_results', ['student_id'])
    op.create_index('ix_published_results_grading_scale_id', 'published_results', ['grading_scale_id'])

    op.create_table(
        'published_subject_results',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('result_id', sa.BigInteger(), nullable=False),
        sa.Column('exam_subject_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_name', sa.String(length=100), nullable=False),
        sa.Column('total_marks', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('passing_marks', sa.DECIMAL(precision=10, scale=2), nullable=False),
        sa.Column('marks_obtained', sa.DECIMAL(precision=10, scale=2), nullable=True),
        sa.Column('is_absent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('percentage', sa.DECIMAL(precision=6, scale=2), nullable=False),
        sa.Column('grade', sa.String(length=10), nullable=True),
        sa.Column('grade_point', sa.DECIMAL(precision=6, scale=2), nullable=True),
        sa.Column('is_pass', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['result_id'], ['published_results.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['exam_subject_id'], ['exam_subjects.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_published_subject_results_result_id', 'published_subject_results', ['result_id'])
    op.create_index('ix_published_subject_results_exam_subject_id', 'published_subject_results', ['exam_subject_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.BigInteger(), nullable=True),
        sa.Column('actor_id', sa.BigInteger(), nullable=True),
        sa.Column('action', sa.Enum(*AUDIT_ACTIONS, name='auditaction'), nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('resource_id', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('extra_data', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_tenant_id', 'audit_logs', ['tenant_id'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    print("✅ Exam engine tables created")


def downgrade() -> None:
    """Drop all exam engine tables and enum types."""
    op.drop_table('audit_logs')
    op.drop_table('published_subject_results')
    op.drop_table('published_results')
    op.drop_table('marks')
    op.drop_table('exam_subjects')
    op.drop_table('exams')
    op.drop_table('grade_bands')
    op.drop_table('grading_scales')
    op.drop_table('students')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute('DROP TYPE IF EXISTS auditaction')
        op.execute('DROP TYPE IF EXISTS examstatus')
        op.execute('DROP TYPE IF EXISTS examtype')
