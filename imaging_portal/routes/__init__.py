from .health import health_bp
from .ingest import ingest_bp
from .imaging import imaging_bp
from .longitudinal import longitudinal_bp
from .dicomweb import dicomweb_bp

__all__ = ['health_bp', 'ingest_bp', 'imaging_bp', 'longitudinal_bp', 'dicomweb_bp']
