from datetime import datetime
from imaging_portal.extensions import db


class TimestampMixin:
    """Adds created_at / updated_at columns maintained on insert and update"""
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
