"""
Celery tasks for upload session ingest
"""
import logging
from flask import current_app
from imaging_portal.extensions import celery
from imaging_portal.errors import ImagingError
from imaging_portal.services.ingest_service import trigger_ingest

logger = logging.getLogger(__name__)


def is_retryable(error):
    """Bad input, unknown sessions, empty uploads and cancellation are final"""
    if isinstance(error, ImagingError):
        return error.status_code >= 500
    return True


@celery.task(bind=True, name='tasks.ingest_upload_session')
def ingest_upload_session(self, session_id, gcs_prefix):
    """
    Import an upload session's files into the DICOM store and create its studies

    Args:
        session_id: UploadSession id
        gcs_prefix: gs:// prefix the files were uploaded under

    Returns:
        dict: Ingest result

    Raises:
        celery.exceptions.Retry: a retryable failure was rescheduled
        Exception: the failure itself once it is final or retries are used up
    """
    try:
        self.update_state(state='PROCESSING', meta={'step': 'Importing into DICOM store'})
        studies = trigger_ingest(session_id, gcs_prefix)
        return {
            'success': True,
            'session_id': session_id,
            'study_ids': [s.study_id for s in studies]
        }

    except Exception as e:
        logger.error(f"Error ingesting upload session {session_id}: {e}", exc_info=True)
        if not is_retryable(e):
            raise
        raise self.retry(
            exc=e,
            countdown=current_app.config.get('INGEST_TASK_RETRY_DELAY_SECONDS', 60),
            max_retries=current_app.config.get('INGEST_TASK_MAX_RETRIES', 5),
        )
