"""
Indexed Slice Model
Per-instance plane geometry used to resolve a patient-space point to a slice
"""
import uuid
from datetime import datetime
from imaging_portal.extensions import db


def _new_slice_id():
    return uuid.uuid4().hex


class IndexedSlice(db.Model):
    """
    One image plane in patient coordinates (mm).

    normal = row_dir x col_dir (not normalized) and plane_d = normal . ipp.
    The resolver computes distances with exactly these two values.
    """
    __tablename__ = 'imaging_slice_index'
    __table_args__ = (
        db.Index('ix_slice_index_study_frame', 'study_id', 'frame_of_reference_uid'),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_slice_id)
    study_id = db.Column(db.String(32), nullable=False, index=True)
    patient_user_id = db.Column(db.String(128), nullable=False, index=True)

    study_instance_uid = db.Column(db.String(255), nullable=False)
    series_instance_uid = db.Column(db.String(255), nullable=False)
    sop_instance_uid = db.Column(db.String(255), nullable=False)
    instance_number = db.Column(db.Integer, nullable=False, default=0)
    frame_of_reference_uid = db.Column(db.String(255), nullable=False, default='')

    # ImagePositionPatient
    ipp_x = db.Column(db.Float, nullable=False)
    ipp_y = db.Column(db.Float, nullable=False)
    ipp_z = db.Column(db.Float, nullable=False)
    # ImageOrientationPatient
    row_dir_x = db.Column(db.Float, nullable=False)
    row_dir_y = db.Column(db.Float, nullable=False)
    row_dir_z = db.Column(db.Float, nullable=False)
    col_dir_x = db.Column(db.Float, nullable=False)
    col_dir_y = db.Column(db.Float, nullable=False)
    col_dir_z = db.Column(db.Float, nullable=False)
    # PixelSpacing (row spacing, column spacing)
    row_spacing = db.Column(db.Float, nullable=False)
    col_spacing = db.Column(db.Float, nullable=False)

    normal_x = db.Column(db.Float, nullable=False)
    normal_y = db.Column(db.Float, nullable=False)
    normal_z = db.Column(db.Float, nullable=False)
    plane_d = db.Column(db.Float, nullable=False)

    study_date = db.Column(db.String(16))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def ipp(self):
        return (self.ipp_x, self.ipp_y, self.ipp_z)

    @property
    def row_dir(self):
        return (self.row_dir_x, self.row_dir_y, self.row_dir_z)

    @property
    def col_dir(self):
        return (self.col_dir_x, self.col_dir_y, self.col_dir_z)

    @property
    def normal(self):
        return (self.normal_x, self.normal_y, self.normal_z)

    def __repr__(self):
        return f"<IndexedSlice {self.sop_instance_uid} - study {self.study_id}>"

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            'id': self.id,
            'study_id': self.study_id,
            'patient_user_id': self.patient_user_id,
            'study_instance_uid': self.study_instance_uid,
            'series_instance_uid': self.series_instance_uid,
            'sop_instance_uid': self.sop_instance_uid,
            'instance_number': self.instance_number,
            'frame_of_reference_uid': self.frame_of_reference_uid,
            'ipp': list(self.ipp),
            'row_dir': list(self.row_dir),
            'col_dir': list(self.col_dir),
            'row_spacing': self.row_spacing,
            'col_spacing': self.col_spacing,
            'normal': list(self.normal),
            'plane_d': self.plane_d,
            'study_date': self.study_date,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
