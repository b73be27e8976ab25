"""
Study Assembler
Turns grouped instance headers into persisted ImagingStudy rows
"""
import base64
import logging
import secrets
from typing import Dict, List

from imaging_portal.extensions import db
from imaging_portal.errors import NoDataError
from imaging_portal.models import ImagingStudy, UploadSession
from .header_scanner import InstanceHeader

logger = logging.getLogger(__name__)


def generate_study_id(prefix: str = 'STUDY') -> str:
    """Short random id, e.g. STUDY-K3QF7A2M"""
    token = base64.b32encode(secrets.token_bytes(5)).decode().rstrip('=')
    return f"{prefix}-{token[:8]}"


def _first_non_empty(values):
    for value in values:
        if value:
            return value
    return ''


def assemble_studies(
    upload_session: UploadSession,
    gcs_prefix: str,
    studies: Dict[str, List[InstanceHeader]],
    dicom_store_path: str = ''
) -> List[ImagingStudy]:
    """
    Create one ImagingStudy per study group, owned by the session's user.

    StudyDescription and StudyDate come from the first instance (in scan
    order) that has a non-empty value.

    Raises:
        NoDataError: no study groups were found
    """
    if not studies:
        raise NoDataError(f"no DICOM studies detected under {gcs_prefix}")

    created = []
    for study_uid, headers in studies.items():
        series_uids = sorted({h.series_instance_uid for h in headers if h.series_instance_uid})
        modalities = sorted({h.modality for h in headers if h.modality})

        study = ImagingStudy(
            study_id=generate_study_id(),
            user_id=upload_session.user_id,
            session_id=upload_session.session_id,
            study_instance_uid=study_uid,
            series_instance_uids=series_uids,
            modalities_in_study=modalities,
            study_date=_first_non_empty(h.study_date for h in headers),
            study_description=_first_non_empty(h.study_description for h in headers),
            num_instances=len(headers),
            gcs_prefix=gcs_prefix,
            dicom_store_path=dicom_store_path,
        )
        db.session.add(study)
        created.append(study)

    db.session.commit()
    logger.info(
        f"Created {len(created)} imaging studies for session {upload_session.session_id}: "
        f"{[s.study_id for s in created]}"
    )
    return created
