"""Create upload session, imaging study and longitudinal index tables

Revision ID: 3c7e91a0b2d4
Revises:
Create Date: 2026-10-17 09:12:44.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7e91a0b2d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'upload_sessions',
        sa.Column('session_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('created_by', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('gcs_uri', sa.String(length=1024), nullable=True),
        sa.Column('gcs_prefix', sa.String(length=1024), nullable=True),
        sa.Column('dicom_import_operation', sa.String(length=1024), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('session_id')
    )
    op.create_index('ix_upload_sessions_user_id', 'upload_sessions', ['user_id'])
    op.create_index('ix_upload_sessions_status', 'upload_sessions', ['status'])

    op.create_table(
        'imaging_studies',
        sa.Column('study_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=True),
        sa.Column('study_instance_uid', sa.String(length=255), nullable=False),
        sa.Column('series_instance_uids', sa.JSON(), nullable=False),
        sa.Column('modalities_in_study', sa.JSON(), nullable=False),
        sa.Column('study_date', sa.String(length=16), nullable=True),
        sa.Column('study_description', sa.String(length=255), nullable=True),
        sa.Column('num_instances', sa.Integer(), nullable=False),
        sa.Column('gcs_prefix', sa.String(length=1024), nullable=True),
        sa.Column('dicom_store_path', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['upload_sessions.session_id']),
        sa.PrimaryKeyConstraint('study_id')
    )
    op.create_index('ix_imaging_studies_user_id', 'imaging_studies', ['user_id'])
    op.create_index('ix_imaging_studies_session_id', 'imaging_studies', ['session_id'])
    op.create_index('ix_imaging_studies_study_instance_uid', 'imaging_studies', ['study_instance_uid'])
    op.create_index('ix_imaging_studies_created_at', 'imaging_studies', ['created_at'])

    op.create_table(
        'imaging_slice_index',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('study_id', sa.String(length=32), nullable=False),
        sa.Column('patient_user_id', sa.String(length=128), nullable=False),
        sa.Column('study_instance_uid', sa.String(length=255), nullable=False),
        sa.Column('series_instance_uid', sa.String(length=255), nullable=False),
        sa.Column('sop_instance_uid', sa.String(length=255), nullable=False),
        sa.Column('instance_number', sa.Integer(), nullable=False),
        sa.Column('frame_of_reference_uid', sa.String(length=255), nullable=False),
        sa.Column('ipp_x', sa.Float(), nullable=False),
        sa.Column('ipp_y', sa.Float(), nullable=False),
        sa.Column('ipp_z', sa.Float(), nullable=False),
        sa.Column('row_dir_x', sa.Float(), nullable=False),
        sa.Column('row_dir_y', sa.Float(), nullable=False),
        sa.Column('row_dir_z', sa.Float(), nullable=False),
        sa.Column('col_dir_x', sa.Float(), nullable=False),
        sa.Column('col_dir_y', sa.Float(), nullable=False),
        sa.Column('col_dir_z', sa.Float(), nullable=False),
        sa.Column('row_spacing', sa.Float(), nullable=False),
        sa.Column('col_spacing', sa.Float(), nullable=False),
        sa.Column('normal_x', sa.Float(), nullable=False),
        sa.Column('normal_y', sa.Float(), nullable=False),
        sa.Column('normal_z', sa.Float(), nullable=False),
        sa.Column('plane_d', sa.Float(), nullable=False),
        sa.Column('study_date', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_imaging_slice_index_study_id', 'imaging_slice_index', ['study_id'])
    op.create_index('ix_imaging_slice_index_patient_user_id', 'imaging_slice_index', ['patient_user_id'])
    op.create_index('ix_slice_index_study_frame', 'imaging_slice_index', ['study_id', 'frame_of_reference_uid'])

    op.create_table(
        'imaging_longitudinal_status',
        sa.Column('study_id', sa.String(length=32), nullable=False),
        sa.Column('patient_user_id', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('study_id')
    )
    op.create_index('ix_imaging_longitudinal_status_patient_user_id', 'imaging_longitudinal_status', ['patient_user_id'])


def downgrade():
    op.drop_index('ix_imaging_longitudinal_status_patient_user_id', table_name='imaging_longitudinal_status')
    op.drop_table('imaging_longitudinal_status')

    op.drop_index('ix_slice_index_study_frame', table_name='imaging_slice_index')
    op.drop_index('ix_imaging_slice_index_patient_user_id', table_name='imaging_slice_index')
    op.drop_index('ix_imaging_slice_index_study_id', table_name='imaging_slice_index')
    op.drop_table('imaging_slice_index')

    op.drop_index('ix_imaging_studies_created_at', table_name='imaging_studies')
    op.drop_index('ix_imaging_studies_study_instance_uid', table_name='imaging_studies')
    op.drop_index('ix_imaging_studies_session_id', table_name='imaging_studies')
    op.drop_index('ix_imaging_studies_user_id', table_name='imaging_studies')
    op.drop_table('imaging_studies')

    op.drop_index('ix_upload_sessions_status', table_name='upload_sessions')
    op.drop_index('ix_upload_sessions_user_id', table_name='upload_sessions')
    op.drop_table('upload_sessions')
