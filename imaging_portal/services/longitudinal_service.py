"""
Longitudinal Service
Triggers (re)indexing of a study's slice geometry and reports index status
"""
import logging
from datetime import datetime
from typing import List, Optional

from imaging_portal.extensions import db
from imaging_portal.errors import NoDataError, NotFound
from imaging_portal.models import ImagingStudy, LongitudinalIndexStatus
from imaging_portal.context import get_service_context
from imaging_portal.utils.decorators import owns_study
from imaging_portal.utils.dicom_utils import datasets_from_dicom_json
from .orientation_filter import filter_study_datasets
from .geometry_indexer import build_indexed_slices, save_indexed_slices_for_study

logger = logging.getLogger(__name__)


def set_index_status(study: ImagingStudy, status: str, last_error: str = '') -> LongitudinalIndexStatus:
    """Replace the study's status record and commit"""
    record = db.session.merge(LongitudinalIndexStatus(
        study_id=study.study_id,
        patient_user_id=study.user_id,
        status=status,
        last_error=last_error,
        updated_at=datetime.utcnow(),
    ))
    db.session.commit()
    return record


def trigger_indexing(study_id: str, caller_id: Optional[str] = None) -> int:
    """
    Rebuild the slice index of one study from DICOM store metadata.

    Status goes indexing -> indexed, or -> error with the message (re-raised).
    When no usable slice is found the previous index is left in place.

    Args:
        study_id: ImagingStudy id
        caller_id: when given, the study must belong to this user

    Returns:
        int: number of slices indexed
    """
    study = ImagingStudy.query.get(study_id) if study_id else None
    if study is None or (caller_id is not None and not owns_study(study, caller_id)):
        raise NotFound(f"study {study_id} not found")

    set_index_status(study, LongitudinalIndexStatus.STATUS_INDEXING)
    ctx = get_service_context()

    try:
        metadata = ctx.require_dicom_store().study_metadata(study.study_instance_uid)
        datasets = filter_study_datasets(datasets_from_dicom_json(metadata))
        slices = build_indexed_slices(study, datasets)
        if not slices:
            raise NoDataError(f"no indexable slices found for study {study_id}")

        count = save_indexed_slices_for_study(study.study_id, slices, ctx.batch_size)
        set_index_status(study, LongitudinalIndexStatus.STATUS_INDEXED)
        logger.info(f"Indexed study {study_id}: {count} slices")
        return count

    except Exception as e:
        db.session.rollback()
        logger.error(f"Indexing failed for study {study_id}: {e}", exc_info=True)
        set_index_status(study, LongitudinalIndexStatus.STATUS_ERROR, str(e))
        raise


def get_index_statuses(study_ids: List[str], caller_id: str) -> List[dict]:
    """
    Index status of each owned study; studies never indexed report not_indexed.
    Unknown or foreign studies are omitted.
    """
    statuses = []
    for study_id in study_ids:
        study = ImagingStudy.query.get(study_id) if study_id else None
        if not owns_study(study, caller_id):
            continue
        record = LongitudinalIndexStatus.query.get(study_id)
        if record is None:
            statuses.append({
                'studyId': study_id,
                'status': LongitudinalIndexStatus.STATUS_NOT_INDEXED,
                'lastError': '',
                'updatedAt': None,
            })
            continue
        statuses.append({
            'studyId': record.study_id,
            'status': record.status,
            'lastError': record.last_error or '',
            'updatedAt': record.updated_at.isoformat() if record.updated_at else None,
        })
    return statuses
