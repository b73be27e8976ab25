"""
Service context: the external collaborators built once at startup
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from flask import current_app

from imaging_portal.errors import UpstreamError

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'imaging_portal'


@dataclass
class ServiceContext:
    storage: Optional[Any] = None
    dicom_store: Optional[Any] = None
    dicom_store_path: str = ''
    poll_interval: float = 5.0
    batch_size: int = 400

    def require_storage(self):
        if self.storage is None:
            raise UpstreamError("object storage client not configured")
        return self.storage

    def require_dicom_store(self):
        if self.dicom_store is None:
            raise UpstreamError("dicom store client not configured")
        return self.dicom_store


def build_service_context(app, storage=None, dicom_store=None) -> ServiceContext:
    """
    Build the context from app config. Collaborators passed in win; otherwise
    Google clients are created when INIT_CLOUD_CLIENTS is on. A client that
    cannot be created (e.g. no credentials) is logged and left unset.
    """
    from imaging_portal.clients.healthcare import dicom_store_path

    cfg = app.config
    if storage is None and cfg.get('INIT_CLOUD_CLIENTS'):
        try:
            from imaging_portal.clients import GcsObjectEnumerator
            storage = GcsObjectEnumerator(project_id=cfg['GCP_PROJECT_ID'])
        except Exception as e:
            logger.error(f"Failed to create storage client: {e}", exc_info=True)

    if dicom_store is None and cfg.get('INIT_CLOUD_CLIENTS'):
        try:
            from imaging_portal.clients import HealthcareDicomStore
            dicom_store = HealthcareDicomStore(
                cfg['GCP_PROJECT_ID'],
                cfg['HEALTHCARE_LOCATION'],
                cfg['HEALTHCARE_DATASET_ID'],
                cfg['HEALTHCARE_DICOM_STORE_ID'],
                base_url=cfg['HEALTHCARE_API_BASE_URL'],
            )
        except Exception as e:
            logger.error(f"Failed to create healthcare client: {e}", exc_info=True)

    return ServiceContext(
        storage=storage,
        dicom_store=dicom_store,
        dicom_store_path=dicom_store_path(
            cfg['GCP_PROJECT_ID'],
            cfg['HEALTHCARE_LOCATION'],
            cfg['HEALTHCARE_DATASET_ID'],
            cfg['HEALTHCARE_DICOM_STORE_ID'],
        ),
        poll_interval=cfg.get('INGEST_POLL_INTERVAL_SECONDS', 5),
        batch_size=cfg.get('INDEX_BATCH_SIZE', 400),
    )


def get_service_context() -> ServiceContext:
    """The context of the current Flask app"""
    return current_app.extensions[EXTENSION_KEY]
