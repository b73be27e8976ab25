from datetime import datetime
from imaging_portal.extensions import db


class LongitudinalIndexStatus(db.Model):
    """Indexing state of one study, replaced wholesale on every transition"""
    __tablename__ = 'imaging_longitudinal_status'

    STATUS_NOT_INDEXED = 'not_indexed'
    STATUS_INDEXING = 'indexing'
    STATUS_INDEXED = 'indexed'
    STATUS_ERROR = 'error'

    study_id = db.Column(db.String(32), primary_key=True)
    patient_user_id = db.Column(db.String(128), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_NOT_INDEXED)
    last_error = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<LongitudinalIndexStatus {self.study_id} - {self.status}>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            'study_id': self.study_id,
            'patient_user_id': self.patient_user_id,
            'status': self.status,
            'last_error': self.last_error,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
