"""
Ingest Service
Drives an upload session from "files uploaded" to "studies available":
import into the DICOM store, wait for the import, scan headers, create studies.
"""
import logging
import threading
from datetime import datetime
from typing import List, Optional

from imaging_portal.extensions import db
from imaging_portal.errors import Cancelled, ImportFailedError, NotFound, UpstreamError, ValidationError
from imaging_portal.clients.object_storage import parse_gcs_prefix
from imaging_portal.models import ImagingStudy, UploadSession
from imaging_portal.context import get_service_context
from .header_scanner import scan_prefix
from .study_assembler import assemble_studies

logger = logging.getLogger(__name__)


class ImportOperationPoller:
    """
    State machine for one long-running import operation.

    running -> succeeded | failed. Each poll() reads the operation once;
    once terminal, further polls return the last result without a call.
    """
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'

    def __init__(self, dicom_store, operation_name: str):
        self.dicom_store = dicom_store
        self.operation_name = operation_name
        self.state = self.RUNNING
        self.error_message = ''
        self.polls = 0

    @property
    def finished(self) -> bool:
        return self.state != self.RUNNING

    def poll(self):
        """
        Read the operation once and advance the state.

        Raises:
            UpstreamError: the operation could not be read
        """
        if self.finished:
            return self.state
        try:
            result = self.dicom_store.get_operation(self.operation_name)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"polling {self.operation_name} failed: {e}") from e
        self.polls += 1

        if result.done:
            if result.error_message:
                self.state = self.FAILED
                self.error_message = result.error_message
            else:
                self.state = self.SUCCEEDED
        return self.state


def wait_for_operation(poller: ImportOperationPoller, interval: float,
                       cancel_event: Optional[threading.Event] = None) -> None:
    """
    Poll until the operation finishes, sleeping `interval` seconds before each poll.

    The sleep and the cancellation signal share one wait, so cancellation is
    observed within one interval.

    Raises:
        Cancelled: cancel_event was set
        ImportFailedError: the operation finished with an error (vendor message)
        UpstreamError: a poll call failed
    """
    if cancel_event is None:
        cancel_event = threading.Event()

    while not poller.finished:
        if cancel_event.wait(interval):
            raise Cancelled(f"waiting for {poller.operation_name} was cancelled")
        poller.poll()
        logger.debug(f"Operation {poller.operation_name} poll #{poller.polls}: {poller.state}")

    if poller.state == ImportOperationPoller.FAILED:
        raise ImportFailedError(poller.error_message)


def update_session(session_id: str, **fields) -> None:
    """Merge-write the given columns (plus updated_at) and commit"""
    fields['updated_at'] = datetime.utcnow()
    UploadSession.query.filter_by(session_id=session_id).update(fields, synchronize_session='fetch')
    db.session.commit()


def trigger_ingest(session_id: str, gcs_prefix: str,
                   cancel_event: Optional[threading.Event] = None) -> List[ImagingStudy]:
    """
    Import the files under gcs_prefix into the DICOM store and create studies.

    The session goes importing -> ready on success, or -> error with
    error_message on any failure (the error is re-raised). Cancellation
    re-raises Cancelled and leaves the session as it was.

    Returns:
        list: the ImagingStudy rows created
    """
    session_id = (session_id or '').strip()
    gcs_prefix = (gcs_prefix or '').strip()
    if not session_id or not gcs_prefix:
        raise ValidationError("session_id and gcs_prefix are required")
    parse_gcs_prefix(gcs_prefix)

    upload_session = UploadSession.query.get(session_id)
    if not upload_session:
        raise NotFound(f"upload session {session_id} not found")

    ctx = get_service_context()
    logger.info(f"Ingest started for session {session_id} from {gcs_prefix}")

    try:
        update_session(
            session_id,
            status=UploadSession.STATUS_IMPORTING,
            error_message='',
            gcs_prefix=gcs_prefix,
            dicom_import_operation='',
        )

        dicom_store = ctx.require_dicom_store()
        operation_name = dicom_store.start_import(gcs_prefix)
        update_session(session_id, dicom_import_operation=operation_name)
        logger.info(f"Session {session_id}: import operation {operation_name}")

        poller = ImportOperationPoller(dicom_store, operation_name)
        wait_for_operation(poller, ctx.poll_interval, cancel_event)

        grouped = scan_prefix(ctx.require_storage(), gcs_prefix)
        studies = assemble_studies(upload_session, gcs_prefix, grouped, ctx.dicom_store_path)

        update_session(session_id, status=UploadSession.STATUS_READY)
        logger.info(f"Ingest finished for session {session_id}: {len(studies)} studies")
        return studies

    except Cancelled:
        db.session.rollback()
        logger.warning(f"Ingest cancelled for session {session_id}")
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Ingest failed for session {session_id}: {e}", exc_info=True)
        update_session(session_id, status=UploadSession.STATUS_ERROR, error_message=str(e))
        raise
