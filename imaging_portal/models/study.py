"""
Imaging Study Model
One row per DICOM study discovered under an upload session's prefix
"""
from datetime import datetime
from imaging_portal.extensions import db


class ImagingStudy(db.Model):
    """
    Written once by the ingest pipeline and never updated afterwards.
    """
    __tablename__ = 'imaging_studies'

    study_id = db.Column(db.String(32), primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    session_id = db.Column(db.String(64), db.ForeignKey('upload_sessions.session_id'), nullable=True, index=True)

    study_instance_uid = db.Column(db.String(255), nullable=False, index=True)
    series_instance_uids = db.Column(db.JSON, nullable=False, default=list)
    modalities_in_study = db.Column(db.JSON, nullable=False, default=list)
    study_date = db.Column(db.String(16))  # DICOM DA, YYYYMMDD
    study_description = db.Column(db.String(255))
    num_instances = db.Column(db.Integer, nullable=False, default=0)

    gcs_prefix = db.Column(db.String(1024))
    dicom_store_path = db.Column(db.String(1024))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    upload_session = db.relationship('UploadSession', backref='studies', lazy=True)

    def __repr__(self):
        return f"<ImagingStudy {self.study_id} - {self.study_instance_uid}>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            'study_id': self.study_id,
            'user_id': self.user_id,
            'session_id': self.session_id,
            'study_instance_uid': self.study_instance_uid,
            'series_instance_uids': list(self.series_instance_uids or []),
            'modalities_in_study': list(self.modalities_in_study or []),
            'study_date': self.study_date,
            'study_description': self.study_description,
            'num_instances': self.num_instances,
            'gcs_prefix': self.gcs_prefix,
            'dicom_store_path': self.dicom_store_path,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
