"""
Upload Session Model
Tracks one batch of uploaded files from upload through import into the DICOM store
"""
from imaging_portal.extensions import db
from .base import TimestampMixin


class UploadSession(db.Model, TimestampMixin):
    """
    A patient or provider upload of DICOM files to an object storage prefix.

    Status lifecycle: pending -> uploading -> uploaded -> importing -> ready | error
    """
    __tablename__ = 'upload_sessions'

    STATUS_PENDING = 'pending'
    STATUS_UPLOADING = 'uploading'
    STATUS_UPLOADED = 'uploaded'
    STATUS_IMPORTING = 'importing'
    STATUS_READY = 'ready'
    STATUS_ERROR = 'error'

    session_id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    created_by = db.Column(db.String(20), default='patient')  # patient, provider
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)

    gcs_uri = db.Column(db.String(1024))
    gcs_prefix = db.Column(db.String(1024))
    dicom_import_operation = db.Column(db.String(1024))
    error_message = db.Column(db.Text)

    def __repr__(self):
        return f"<UploadSession {self.session_id} - {self.status}>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            'session_id': self.session_id,
            'user_id': self.user_id,
            'created_by': self.created_by,
            'status': self.status,
            'gcs_uri': self.gcs_uri,
            'gcs_prefix': self.gcs_prefix,
            'dicom_import_operation': self.dicom_import_operation,
            'error_message': self.error_message,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
